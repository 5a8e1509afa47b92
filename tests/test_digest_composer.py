import asyncio
from datetime import timedelta

import pytest

from conftest import FakeProvider
from news_digest.core.exceptions import SummarizationError
from news_digest.prompts import PromptLoader
from news_digest.schemas import Article
from news_digest.services.digest_composer import DigestComposer, count_words, shorten_title
from news_digest.services.llm_service import LLMService
from news_digest.services.rate_limiter import AI, RateLimit, RateLimiter

ARTICLES = [
    Article(title="Parliament passes Malaysia budget bill", url="https://example.com/a",
            content="The Dewan Rakyat approved the budget."),
    Article(title="Regional summit opens in Jakarta", url="https://example.com/b",
            content="Leaders gathered.", category="international"),
]


def _composer(response="", error=None, rate_limiter=None):
    provider = FakeProvider(response, error)
    limiter = rate_limiter or RateLimiter({AI: RateLimit(10, timedelta(hours=1))})
    return DigestComposer(LLMService(providers={"fake": provider}), limiter), provider


def test_generate_digest_counts_words_locally():
    composer, provider = _composer('{"title": "Test Digest", "content": "<p>word word word</p>", "word_count": 999}')
    draft = asyncio.run(composer.generate_digest(ARTICLES))

    assert draft.title == "Test Digest"
    assert draft.content == "<p>word word word</p>"
    assert draft.word_count == 3
    assert provider.calls[0]["json_mode"] is True


def test_prompt_puts_top_story_first_and_lists_articles():
    composer, provider = _composer('{"title": "T", "content": "c"}')
    asyncio.run(composer.generate_digest(ARTICLES))

    prompt = provider.calls[0]["prompt"]
    assert "Parliament passes Malaysia budget bill" in prompt
    assert "Regional summit opens in Jakarta" in prompt
    assert prompt.index("Parliament passes") < prompt.index("Regional summit")
    assert provider.calls[0]["system"]


def test_response_wrapped_in_prose_is_accepted():
    composer, _ = _composer('Here you go:\n```json\n{"title": "Budget day", "content": "<p>Text</p>"}\n```')
    draft = asyncio.run(composer.generate_digest(ARTICLES))
    assert draft.title == "Budget day"


def test_model_html_is_cleaned():
    composer, _ = _composer('{"title": "T", "content": "<p onclick=\\"x()\\">Hi</p><script>bad()</script>"}')
    draft = asyncio.run(composer.generate_digest(ARTICLES))
    assert draft.content == "<p>Hi</p>"


@pytest.mark.parametrize("response", [
    '{"content": "<p>text</p>"}',
    '{"title": "Title only"}',
    '{"title": "", "content": "<p>text</p>"}',
    '{"title": 5, "content": "<p>text</p>"}',
    "no json here",
    "[1, 2, 3]",
    "",
])
def test_malformed_responses_raise(response):
    composer, _ = _composer(response)
    with pytest.raises(SummarizationError):
        asyncio.run(composer.generate_digest(ARTICLES))


def test_model_failure_is_sanitized():
    composer, _ = _composer(error=RuntimeError("401 from https://api.openai.com with key sk-abcdefghijklmnop"))
    with pytest.raises(SummarizationError) as exc_info:
        asyncio.run(composer.generate_digest(ARTICLES))

    message = str(exc_info.value)
    assert "api.openai.com" not in message
    assert "sk-abcdefghijklmnop" not in message


def test_rate_limit_checked_before_calling_model():
    limiter = RateLimiter({AI: RateLimit(1, timedelta(hours=1))})
    composer, provider = _composer('{"title": "T", "content": "c"}', rate_limiter=limiter)

    asyncio.run(composer.generate_digest(ARTICLES))
    with pytest.raises(SummarizationError, match="rate limit"):
        asyncio.run(composer.generate_digest(ARTICLES))
    assert len(provider.calls) == 1


def test_no_articles():
    composer, provider = _composer('{"title": "T", "content": "c"}')
    with pytest.raises(SummarizationError):
        asyncio.run(composer.generate_digest([]))
    assert provider.calls == []


def test_count_words():
    assert count_words("<p>word word word</p>") == 3
    assert count_words("") == 0


def test_shorten_title():
    assert shorten_title("Short title") == "Short title"
    long_title = "Parliament approves the national budget after a marathon overnight session"
    shortened = shorten_title(long_title)
    assert len(shortened) <= 50
    assert long_title.startswith(shortened)


def test_prompt_templates_are_packaged():
    assert PromptLoader().get_available_prompts() == ["digest.md", "digest_system.md"]
