from .prompt_loader import PromptLoader

__all__ = ['PromptLoader']
