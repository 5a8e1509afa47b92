"""
Base class for LLM providers
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


class BaseLLMProvider(ABC):
    """Base class for all LLM providers"""

    def __init__(self, name: str, config: Dict[str, Any]):
        """
        Initialize the provider

        Args:
            name: Provider name
            config: Provider configuration
        """
        self.name = name
        self.config = config
        self.timeout = config.get('timeout', 60)

        logger.info(f"Initialized LLM provider: {name}")

    @abstractmethod
    async def generate(self, prompt: str, system: Optional[str] = None, json_mode: bool = False, **kwargs) -> str:
        """
        Generate a completion for the prompt

        Args:
            prompt: User prompt
            system: Optional system instructions
            json_mode: Ask the model for a single JSON object
            **kwargs: Extra generation parameters (temperature, max_tokens, ...)

        Returns:
            Raw response text

        Raises:
            Exception: When the upstream call fails
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True when the provider is configured well enough to be called"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Probe the upstream service"""
        pass

    def get_info(self) -> Dict[str, Any]:
        """
        Provider description with secrets removed

        Returns:
            Dictionary with provider information
        """
        return {
            "name": self.name,
            "type": self.__class__.__name__,
            "available": self.is_available(),
            "config": {k: v for k, v in self.config.items() if k != 'api_key'}
        }
