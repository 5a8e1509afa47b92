"""
LLM providers for the news digest
"""

from .base import BaseLLMProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = ['BaseLLMProvider', 'OllamaProvider', 'OpenAIProvider']
