import logging
from typing import Any, Dict, List, Sequence

from news_digest.core.exceptions import SummarizationError
from news_digest.prompts import PromptLoader
from news_digest.schemas import Article, DigestDraft
from news_digest.services.llm_service import LLMService
from news_digest.services.rate_limiter import AI, RateLimiter
from news_digest.services.sanitizer import clean_digest_html, sanitize_error_message, sanitize_text

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 50
EXCERPT_LENGTH = 500
TARGET_WORDS = 500


def count_words(content: str) -> int:
    """Whitespace-separated tokens of the returned content"""
    return len(content.split())


def shorten_title(title: str, max_length: int = MAX_TITLE_LENGTH) -> str:
    title = " ".join(title.split())
    if len(title) <= max_length:
        return title
    cut = title[:max_length + 1].rsplit(" ", 1)[0]
    return (cut if 0 < len(cut) <= max_length else title[:max_length]).rstrip(" ,.;:-")


class DigestComposer:
    """Turns ranked articles into a digest with a single structured LLM call"""

    def __init__(self, llm_service: LLMService, rate_limiter: RateLimiter, prompt_loader: PromptLoader = None):
        self.llm_service = llm_service
        self.rate_limiter = rate_limiter
        self.prompt_loader = prompt_loader or PromptLoader()

    def build_prompt(self, articles: Sequence[Article]) -> str:
        """The first article is treated as the top story"""
        return self.prompt_loader.load_prompt(
            'digest.md',
            article_count=len(articles),
            top_story_title=articles[0].title,
            articles=articles,
            excerpt_length=EXCERPT_LENGTH,
            target_words=TARGET_WORDS,
            max_title_length=MAX_TITLE_LENGTH,
        )

    async def generate_digest(self, articles: List[Article]) -> DigestDraft:
        """
        Summarize ranked articles

        Args:
            articles: Articles ordered by relevance, lead story first

        Returns:
            Title, HTML content and locally computed word count

        Raises:
            SummarizationError: Rate limited, model call failed or malformed payload
        """
        if not articles:
            raise SummarizationError("No articles to summarize")

        if not self.rate_limiter.try_consume(AI):
            raise SummarizationError("AI rate limit exceeded, digest generation skipped")

        prompt = self.build_prompt(articles)
        system = self.prompt_loader.load_prompt('digest_system.md')

        logger.info(f"Generating digest from {len(articles)} articles, top story: '{articles[0].title}'")
        try:
            response = await self.llm_service.generate(prompt, system=system, json_mode=True)
        except Exception as e:
            raise SummarizationError(
                f"Model call failed: {sanitize_error_message(f'{type(e).__name__}: {e}')}"
            ) from e

        try:
            payload = self.llm_service.parse_json_response(response or "")
        except ValueError as e:
            raise SummarizationError(f"Invalid response format from the model: {e}") from e

        return self._to_draft(payload)

    def _to_draft(self, payload: Dict[str, Any]) -> DigestDraft:
        title = payload.get("title")
        content = payload.get("content")

        if not isinstance(title, str) or not title.strip():
            raise SummarizationError("Model response is missing 'title'")
        if not isinstance(content, str) or not content.strip():
            raise SummarizationError("Model response is missing 'content'")

        content = clean_digest_html(content)
        title = shorten_title(sanitize_text(title, max_length=300))
        if not title or not content:
            raise SummarizationError("Model response is empty after sanitizing")

        draft = DigestDraft(title=title, content=content, word_count=count_words(content))
        logger.info(f"Digest generated: '{draft.title}' ({draft.word_count} words)")
        return draft
