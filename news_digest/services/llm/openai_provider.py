"""
OpenAI LLM provider
"""

import logging
from typing import Dict, Any, Optional
from openai import AsyncOpenAI, OpenAIError
from .base import BaseLLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """Provider for the OpenAI chat completions API"""

    def __init__(self, config: Dict[str, Any], client: Optional[AsyncOpenAI] = None):
        """
        Args:
            config: Configuration with keys api_key, model, timeout, max_tokens
            client: Preconfigured client, built from the config when omitted
        """
        super().__init__("openai", config)

        self.model = config.get('model', 'gpt-4o')
        self.max_tokens = config.get('max_tokens', 1000)
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.config.get('api_key'), timeout=self.timeout)
        return self._client

    async def generate(self, prompt: str, system: Optional[str] = None, json_mode: bool = False, **kwargs) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        request = {
            "model": self.model,
            "messages": messages,
            "max_tokens": kwargs.get('max_tokens', self.max_tokens),
            "temperature": kwargs.get('temperature', 0.7),
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        logger.info(f"Sending request to OpenAI: {self.model}")
        response = await self.client.chat.completions.create(**request)

        content = response.choices[0].message.content or ""
        logger.info(f"OpenAI response received, length: {len(content)} characters")
        return content

    def is_available(self) -> bool:
        return bool(self.config.get('api_key'))

    async def health_check(self) -> Dict[str, Any]:
        if not self.is_available():
            return {"status": "unhealthy", "error": "OPENAI_API_KEY is not set"}
        try:
            await self.client.models.retrieve(self.model)
            return {"status": "healthy", "model": self.model}
        except OpenAIError as e:
            return {"status": "unhealthy", "error": type(e).__name__}
