"""
Ollama LLM provider
"""

import logging
import httpx
from typing import Dict, Any, Optional
from .base import BaseLLMProvider

logger = logging.getLogger(__name__)


class OllamaProvider(BaseLLMProvider):
    """Provider for a local Ollama server"""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the Ollama provider

        Args:
            config: Configuration with keys:
                - base_url: Ollama server URL
                - model: Model name
                - timeout: Request timeout
        """
        super().__init__("ollama", config)

        self.base_url = config.get('base_url', 'http://localhost:11434').rstrip('/')
        self.model = config.get('model', 'llama3.1:8b')

        logger.info(f"Ollama provider configured, model: {self.model}")

    async def generate(self, prompt: str, system: Optional[str] = None, json_mode: bool = False, **kwargs) -> str:
        """
        Generate a response through the Ollama API

        Raises:
            httpx.HTTPError: On transport errors
            RuntimeError: On a non-200 response
        """
        logger.info(f"Sending request to Ollama: {self.model}")
        logger.debug(f"Prompt (first 100 characters): {prompt[:100]}...")

        generation_params = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": kwargs.get('temperature', 0.7),
                "top_p": kwargs.get('top_p', 0.9)
            }
        }
        if system:
            generation_params["system"] = system
        if json_mode:
            generation_params["format"] = "json"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(f"{self.base_url}/api/generate", json=generation_params)

        logger.info(f"Ollama responded: {response.status_code}")
        if response.status_code != 200:
            raise RuntimeError(f"Ollama API error: {response.status_code}")

        response_text = response.json().get("response", "").strip()
        logger.info(f"Ollama response received, length: {len(response_text)} characters")
        return response_text

    def is_available(self) -> bool:
        # Local service, assumed reachable
        return True

    async def health_check(self) -> Dict[str, Any]:
        """Ollama health check"""
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                response = await client.get(f"{self.base_url}/api/tags")

            if response.status_code == 200:
                available_models = [model['name'] for model in response.json().get('models', [])]
                return {
                    "status": "healthy",
                    "model": self.model,
                    "model_available": self.model in available_models,
                }
            return {"status": "unhealthy", "error": f"HTTP {response.status_code}"}

        except httpx.HTTPError as e:
            return {"status": "unhealthy", "error": type(e).__name__}
