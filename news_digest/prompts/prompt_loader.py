"""
Prompt loader with jinja2 templating
"""

import logging
from pathlib import Path
from typing import Dict, Optional
from jinja2 import Environment, FileSystemLoader, Template

logger = logging.getLogger(__name__)


class PromptLoader:
    """Loads and renders prompt templates"""

    def __init__(self, prompts_dir: Optional[str] = None):
        """
        Args:
            prompts_dir: Directory with the prompt templates (defaults to news_digest/prompts/templates)
        """
        if prompts_dir is None:
            prompts_dir = Path(__file__).parent / "templates"

        self.prompts_dir = str(prompts_dir)

        self.env = Environment(
            loader=FileSystemLoader(self.prompts_dir),
            autoescape=False,  # prompts are plain text
            trim_blocks=True,
            lstrip_blocks=True
        )

        self._template_cache: Dict[str, Template] = {}

        logger.info(f"PromptLoader initialized with directory: {self.prompts_dir}")

    def load_prompt(self, template_name: str, **kwargs) -> str:
        """
        Load and render a prompt

        Args:
            template_name: Template file name (e.g. 'digest.md')
            **kwargs: Template variables

        Returns:
            Rendered prompt

        Raises:
            jinja2.TemplateNotFound: If the template file does not exist
            jinja2.TemplateError: On rendering errors
        """
        if template_name not in self._template_cache:
            self._template_cache[template_name] = self.env.get_template(template_name)
            logger.debug(f"Loaded template: {template_name}")

        rendered = self._template_cache[template_name].render(**kwargs)
        return rendered.strip()

    def get_available_prompts(self) -> list[str]:
        return sorted(f.name for f in Path(self.prompts_dir).glob("*.md") if f.is_file())
