import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from itertools import chain, zip_longest
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from news_digest.core.exceptions import FetchError, RateLimitExceeded
from news_digest.schemas import Article, NewsBatch
from news_digest.services.image_service import ImageService
from news_digest.services.ranking_service import RelevanceRanker
from news_digest.services.rate_limiter import HTTP, RateLimiter
from news_digest.services.sanitizer import sanitize_error_message, sanitize_text

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"
}

LISTING_SELECTOR = "article, .news-item, .post-item"
TITLE_SELECTOR = "h1, h2, h3, .title, .headline"
UNWANTED_SELECTOR = "script, style, nav, header, footer, .advertisement, .ads, .social-share"
CONTENT_SELECTORS = [
    ".entry-content",
    ".post-content",
    ".article-content",
    ".content",
    "main article",
    ".story-body",
]
IMAGE_SELECTORS = [".featured-image img", ".wp-post-image", "article img", ".entry-content img", "figure img"]
WIDE_IMAGE_SELECTORS = IMAGE_SELECTORS + ["main img", ".post img", ".single img", "img"]
META_IMAGE_SELECTORS = ['meta[property="og:image"]', 'meta[name="og:image"]',
                        'meta[name="twitter:image"]', 'meta[property="twitter:image"]']

_RE_RELATIVE_TIME = re.compile(r"(\d+)\s*(second|sec|minute|min|hour|hr|day|week)s?\s+ago", re.IGNORECASE)
_RE_EXCLUDED_IMAGE = re.compile(r"logo|icon|\bads?\b|avatar|banner|sprite|placeholder", re.IGNORECASE)

_UNIT_SECONDS = {
    "second": 1, "sec": 1,
    "minute": 60, "min": 60,
    "hour": 3600, "hr": 3600,
    "day": 86400,
    "week": 604800,
}

MIN_TITLE_LENGTH = 10


def parse_relative_time(text: str, now: datetime) -> Optional[datetime]:
    """'2 hours ago' -> now - 2h"""
    match = _RE_RELATIVE_TIME.search(text or "")
    if not match:
        return None
    amount, unit = int(match.group(1)), match.group(2).lower()
    return now - timedelta(seconds=amount * _UNIT_SECONDS[unit])


def parse_datetime_attr(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class NewsService:
    """Scrapes listing pages and article bodies from the news site"""

    def __init__(
        self,
        client: httpx.AsyncClient,
        ranker: RelevanceRanker,
        rate_limiter: Optional[RateLimiter] = None,
        image_service: Optional[ImageService] = None,
        base_url: str = "https://www.freemalaysiatoday.com",
        sections: Optional[Sequence[Tuple[str, str]]] = None,
        media_path: str = "/wp-content/uploads/",
        retention_hours: int = 6,
        article_timeout: float = 10.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            client: Shared async HTTP client
            ranker: Picks the lead story for image extraction
            rate_limiter: Limits outbound HTTP requests
            image_service: Downloads and embeds the lead image
            base_url: Site root, relative links resolve against it
            sections: (path, category) pairs; the first one is the primary listing
            media_path: Path fragment every accepted image URL must contain
            retention_hours: Entries published earlier than this are dropped
            article_timeout: Seconds allowed per article page
        """
        self.client = client
        self.ranker = ranker
        self.rate_limiter = rate_limiter
        self.image_service = image_service
        self.base_url = base_url.rstrip("/")
        self.sections = list(sections or [("/category/nation/", "domestic"), ("/category/world/", "international")])
        self.media_path = media_path
        self.retention = timedelta(hours=retention_hours)
        self.article_timeout = article_timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def fetch_latest_news(self, limit: int = 10) -> NewsBatch:
        """
        Fetch the latest articles with their content and the lead image

        Raises:
            FetchError: The primary listing page could not be fetched
        """
        logger.info(f"Fetching up to {limit} articles from {len(self.sections)} sections")

        listings = await asyncio.gather(
            *[self._fetch_listing(path, category) for path, category in self.sections],
            return_exceptions=True,
        )

        per_section: List[List[Article]] = []
        for index, ((path, category), result) in enumerate(zip(self.sections, listings)):
            if isinstance(result, BaseException):
                if index == 0:
                    if isinstance(result, FetchError):
                        raise result
                    raise FetchError(f"Failed to fetch listing page {path}: {result}") from result
                logger.warning(f"Skipping {category} section {path}: {sanitize_error_message(str(result))}")
                continue
            logger.info(f"Section {path}: {len(result)} candidates inside the retention window")
            per_section.append(result)

        # Alternate sections so every category is represented before the cap
        interleaved = [a for a in chain.from_iterable(zip_longest(*per_section)) if a is not None]
        candidates = interleaved[:limit * 2]
        if not candidates:
            logger.warning("No articles found on the listing pages")
            return NewsBatch(articles=[])

        articles = await asyncio.gather(*[self._with_content(article) for article in candidates])
        articles = [a for a in articles if len(a.title) > MIN_TITLE_LENGTH][:limit]
        logger.info(f"Collected {len(articles)} articles")

        lead_image = await self._select_lead_image(articles)
        return NewsBatch(articles=articles, lead_image=lead_image)

    async def _get(self, url: str, timeout: Optional[float] = None) -> str:
        if self.rate_limiter and not self.rate_limiter.try_consume(HTTP):
            raise RateLimitExceeded(HTTP)

        try:
            response = await self.client.get(url, timeout=timeout, follow_redirects=True)
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {url} failed: {type(e).__name__}") from e

        if not response.is_success:
            raise FetchError(f"HTTP error {response.status_code} for {url}")
        return response.text

    async def _fetch_listing(self, path: str, category: str) -> List[Article]:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        try:
            html = await self._get(url)
        except RateLimitExceeded as e:
            raise FetchError(str(e)) from e
        return self.parse_listing(html, category)

    def parse_listing(self, html: str, category: str) -> List[Article]:
        """Extract title, absolute link and publish time from a listing page"""
        soup = BeautifulSoup(html, "html.parser")
        now = self._clock()
        cutoff = now - self.retention
        articles = []

        for element in soup.select(LISTING_SELECTOR):
            title_el = element.select_one(TITLE_SELECTOR)
            link_el = element.select_one("a[href]")
            if not title_el or not link_el:
                continue

            title = sanitize_text(title_el.get_text(" ", strip=True), max_length=300)
            href = link_el.get("href", "").strip()
            if not title or not href or href.startswith(("#", "javascript:", "mailto:")):
                continue

            published_at = self._published_at(element, now)
            if published_at < cutoff:
                logger.debug(f"Skipping '{title}', published {published_at.isoformat()}")
                continue

            articles.append(Article(
                title=title,
                url=urljoin(self.base_url + "/", href),
                published_at=published_at,
                category=category,
            ))

        return articles

    def _published_at(self, element, now: datetime) -> datetime:
        time_el = element.select_one("time[datetime]")
        if time_el:
            parsed = parse_datetime_attr(time_el.get("datetime", ""))
            if parsed:
                return parsed

        relative = parse_relative_time(element.get_text(" ", strip=True), now)
        return relative or now

    async def _with_content(self, article: Article) -> Article:
        """Attach the page body; any failure degrades to title-only content"""
        try:
            html = await asyncio.wait_for(self._get(article.url, timeout=self.article_timeout),
                                          timeout=self.article_timeout)
            raw_content, image_url = self.extract_content(html, article.url)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out fetching '{article.title}', using title as content")
            return article.model_copy(update={"raw_content": article.title, "content": article.title})
        except Exception as e:
            logger.warning(f"Error fetching content for '{article.title}': {sanitize_error_message(str(e))}")
            return article.model_copy(update={"raw_content": article.title, "content": article.title})

        content = sanitize_text(raw_content) or sanitize_text(article.title)
        return article.model_copy(update={
            "raw_content": raw_content or article.title,
            "content": content,
            "image_url": image_url,
        })

    def extract_content(self, html: str, page_url: str) -> Tuple[str, Optional[str]]:
        """Body text and the best image candidate of an article page"""
        soup = BeautifulSoup(html, "html.parser")
        image_url = self._find_image(soup, IMAGE_SELECTORS, page_url)

        for element in soup.select(UNWANTED_SELECTOR):
            element.decompose()

        content = ""
        for selector in CONTENT_SELECTORS:
            element = soup.select_one(selector)
            if element:
                content = element.get_text(" ", strip=True)
                break

        if not content:
            content = " ".join(p.get_text(" ", strip=True) for p in soup.find_all("p"))

        return content.strip(), image_url

    def _accept_image(self, url: Optional[str], require_media_path: bool = True) -> bool:
        if not url or url.startswith("data:"):
            return False
        if _RE_EXCLUDED_IMAGE.search(url):
            return False
        return not require_media_path or self.media_path in url

    @staticmethod
    def _image_src(img) -> Optional[str]:
        for attr in ("src", "data-src", "data-lazy-src"):
            value = img.get(attr)
            if value and not value.startswith("data:"):
                return value.strip()
        srcset = img.get("srcset") or img.get("data-srcset")
        if srcset:
            return srcset.split(",")[0].strip().split(" ")[0]
        return None

    def _find_image(self, soup: BeautifulSoup, selectors: Sequence[str], page_url: str) -> Optional[str]:
        for selector in selectors:
            for img in soup.select(selector):
                src = self._image_src(img)
                if not src:
                    continue
                url = urljoin(page_url, src)
                if self._accept_image(url):
                    return url
        return None

    async def _find_image_directly(self, page_url: str) -> Optional[str]:
        """Second pass for the lead story: meta tags, then a wider selector set"""
        try:
            html = await self._get(page_url, timeout=self.article_timeout)
        except Exception as e:
            logger.warning(f"Direct image lookup failed: {sanitize_error_message(str(e))}")
            return None

        soup = BeautifulSoup(html, "html.parser")
        for selector in META_IMAGE_SELECTORS:
            meta = soup.select_one(selector)
            content = meta.get("content") if meta else None
            if content:
                url = urljoin(page_url, content.strip())
                if self._accept_image(url, require_media_path=False):
                    return url

        return self._find_image(soup, WIDE_IMAGE_SELECTORS, page_url)

    async def _select_lead_image(self, articles: List[Article]):
        if not articles or not self.image_service:
            return None

        top = self.ranker.top_story(articles)
        image_url = top.image_url or await self._find_image_directly(top.url)
        if not image_url:
            logger.info(f"No image found for top story '{top.title}'")
            return None

        logger.info(f"Lead image found for '{top.title}'")
        return await self.image_service.fetch_lead_image(image_url)
