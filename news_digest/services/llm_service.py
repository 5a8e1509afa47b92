"""
Main LLM service: provider selection and JSON response parsing
"""

import logging
import json
from typing import Dict, Any, Optional
from news_digest.services.llm.base import BaseLLMProvider
from news_digest.services.llm.ollama_provider import OllamaProvider
from news_digest.services.llm.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


class LLMService:
    """Routes generation requests to the active provider"""

    def __init__(self, settings=None, providers: Optional[Dict[str, BaseLLMProvider]] = None,
                 active_provider: Optional[str] = None):
        """
        Args:
            settings: Application settings used to build the default providers
            providers: Prebuilt providers by name (skips building from settings)
            active_provider: Provider name, defaults to settings.LLM_PROVIDER
        """
        self.providers: Dict[str, BaseLLMProvider] = dict(providers or {})
        if not self.providers:
            self._init_providers(settings)

        self.active_provider = active_provider or (settings.LLM_PROVIDER if settings else None) \
            or next(iter(self.providers))
        if self.active_provider not in self.providers:
            fallback = "openai" if "openai" in self.providers else next(iter(self.providers))
            logger.warning(f"Provider {self.active_provider} not found, using {fallback}")
            self.active_provider = fallback

        logger.info(f"LLM service initialized, active provider: {self.active_provider}")

    def _init_providers(self, settings):
        """Build the available providers from settings"""
        if settings is None:
            raise ValueError("settings are required when no providers are given")

        self.providers['openai'] = OpenAIProvider({
            'api_key': settings.OPENAI_API_KEY,
            'model': settings.OPENAI_MODEL,
            'timeout': 120,
            'max_tokens': 1000,
        })
        self.providers['ollama'] = OllamaProvider({
            'base_url': settings.OLLAMA_BASE_URL,
            'model': settings.OLLAMA_MODEL,
            'timeout': 300,
        })

    async def generate(self, prompt: str, **kwargs) -> str:
        """
        Generate a response through the active provider

        Args:
            prompt: Prompt text
            **kwargs: Passed through to the provider (system, json_mode, ...)

        Returns:
            Raw response text
        """
        provider = self.providers[self.active_provider]
        return await provider.generate(prompt, **kwargs)

    def parse_json_response(self, response: str) -> Dict[str, Any]:
        """
        Parse the JSON object out of an LLM response

        Args:
            response: Response text, possibly wrapped in prose or code fences

        Returns:
            Parsed object

        Raises:
            ValueError: When no JSON object can be parsed
        """
        json_start = response.find('{')
        json_end = response.rfind('}') + 1

        if json_start == -1 or json_end == 0:
            raise ValueError("No JSON object found in the response")

        try:
            parsed = json.loads(response[json_start:json_end])
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in the response: {e}") from e

        if not isinstance(parsed, dict):
            raise ValueError("The response JSON is not an object")
        return parsed

    def get_provider_info(self) -> Dict[str, Any]:
        return {
            "active_provider": self.active_provider,
            "providers": {name: provider.get_info() for name, provider in self.providers.items()}
        }

    async def health_check(self) -> Dict[str, Any]:
        """Health of every provider"""
        health_status = {}

        for name, provider in self.providers.items():
            health_status[name] = {
                "available": provider.is_available(),
                "healthy": await provider.health_check()
            }

        return health_status
