import asyncio
import logging
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from conftest import BASE_URL, NOW, load_fixture, mock_client, png_bytes
from news_digest.core.exceptions import FetchError
from news_digest.services.image_service import ImageService
from news_digest.services.news_service import NewsService, parse_datetime_attr, parse_relative_time
from news_digest.services.ranking_service import RelevanceRanker

NATION = f"{BASE_URL}/category/nation/"
WORLD = f"{BASE_URL}/category/world/"
BUDGET = f"{BASE_URL}/category/nation/2025/01/15/parliament-passes-budget/"
RINGGIT = f"{BASE_URL}/category/nation/2025/01/15/ringgit-strengthens/"
SUMMIT = f"{BASE_URL}/category/world/2025/01/15/summit-opens/"
LEAD_PHOTO = f"{BASE_URL}/wp-content/uploads/2025/01/lead-photo.jpg"


def _routes(**overrides):
    routes = {
        NATION: load_fixture("listing_nation.html"),
        WORLD: load_fixture("listing_world.html"),
        BUDGET: load_fixture("article.html"),
        RINGGIT: load_fixture("article.html"),
        SUMMIT: load_fixture("article_no_image.html"),
        LEAD_PHOTO: png_bytes(),
    }
    routes.update(overrides)
    return routes


def _service(client, rate_limiter=None, with_images=True):
    ranker = RelevanceRanker(["parliament", "budget", "ringgit"])
    return NewsService(
        client,
        ranker,
        rate_limiter=rate_limiter,
        image_service=ImageService(client, rate_limiter=rate_limiter) if with_images else None,
        base_url=BASE_URL,
        clock=lambda: NOW,
    )


def test_parse_relative_time():
    assert parse_relative_time("Posted 2 hours ago", NOW) == NOW - timedelta(hours=2)
    assert parse_relative_time("15 mins ago", NOW) == NOW - timedelta(minutes=15)
    assert parse_relative_time("Yesterday", NOW) is None


def test_parse_datetime_attr():
    assert parse_datetime_attr("2025-01-15T10:00:00Z") == datetime(2025, 1, 15, 10, tzinfo=timezone.utc)
    assert parse_datetime_attr("2025-01-15T10:00:00").tzinfo is not None
    assert parse_datetime_attr("soon") is None


def test_parse_listing_applies_retention_window():
    service = _service(mock_client({}))
    articles = service.parse_listing(load_fixture("listing_nation.html"), "domestic")

    assert [a.title for a in articles] == [
        "Parliament passes Malaysia budget bill",
        "Ringgit strengthens against the dollar",
    ]
    assert articles[0].url == BUDGET
    assert articles[0].published_at == datetime(2025, 1, 15, 10, tzinfo=timezone.utc)
    assert articles[1].published_at == NOW - timedelta(hours=3)
    assert all(a.category == "domestic" for a in articles)


def test_extract_content_prefers_article_body_and_media_image():
    service = _service(mock_client({}))
    content, image_url = service.extract_content(load_fixture("article.html"), BUDGET)

    assert content.startswith("KUALA LUMPUR: The Dewan Rakyat")
    assert "trackPageView" not in content
    assert "Share this" not in content
    assert image_url == LEAD_PHOTO


def test_fetch_latest_news_interleaves_sections_and_embeds_lead_image(rate_limiter):
    client = mock_client(_routes())
    batch = asyncio.run(_service(client, rate_limiter).fetch_latest_news(limit=10))

    assert [a.category for a in batch.articles] == ["domestic", "international", "domestic"]
    assert batch.articles[0].title == "Parliament passes Malaysia budget bill"
    assert "Dewan Rakyat" in batch.articles[0].content
    assert batch.articles[1].content == "Leaders from across the region gathered for the opening session."

    assert batch.lead_image.url == LEAD_PHOTO
    assert batch.lead_image.data_uri.startswith("data:image/jpeg;base64,")
    assert batch.lead_image.src == batch.lead_image.data_uri


def test_fetch_latest_news_respects_limit():
    batch = asyncio.run(_service(mock_client(_routes()), with_images=False).fetch_latest_news(limit=2))
    assert len(batch.articles) == 2
    assert batch.lead_image is None


def test_failed_article_page_falls_back_to_title():
    client = mock_client(_routes(**{RINGGIT: 500}))
    batch = asyncio.run(_service(client, with_images=False).fetch_latest_news(limit=10))

    ringgit = next(a for a in batch.articles if "Ringgit" in a.title)
    assert ringgit.content == ringgit.title
    assert ringgit.image_url is None


def test_slow_article_page_falls_back_to_title():
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = mock_client(_routes(**{SUMMIT: slow}))
    batch = asyncio.run(_service(client, with_images=False).fetch_latest_news(limit=10))

    summit = next(a for a in batch.articles if a.category == "international")
    assert summit.content == "Regional summit opens in Jakarta"


def test_primary_listing_failure_raises():
    client = mock_client(_routes(**{NATION: 503}))
    with pytest.raises(FetchError):
        asyncio.run(_service(client).fetch_latest_news(limit=10))


def test_secondary_listing_failure_is_skipped():
    client = mock_client(_routes(**{WORLD: 500}))
    batch = asyncio.run(_service(client, with_images=False).fetch_latest_news(limit=10))
    assert [a.category for a in batch.articles] == ["domestic", "domestic"]


def test_empty_listing_returns_empty_batch():
    client = mock_client({
        NATION: load_fixture("listing_empty.html"),
        WORLD: load_fixture("listing_empty.html"),
    })
    batch = asyncio.run(_service(client).fetch_latest_news(limit=10))

    assert batch.articles == []
    assert batch.lead_image is None


def test_broken_image_falls_back_to_url():
    client = mock_client(_routes(**{LEAD_PHOTO: b"not an image"}))
    batch = asyncio.run(_service(client).fetch_latest_news(limit=10))

    assert batch.lead_image.url == LEAD_PHOTO
    assert batch.lead_image.data_uri is None
    assert batch.lead_image.src == LEAD_PHOTO


def test_lead_image_from_meta_tag_when_page_has_no_media_image():
    og_image = "https://cdn.example.net/images/summit-wide.jpg"
    client = mock_client({
        NATION: load_fixture("listing_empty.html"),
        WORLD: load_fixture("listing_world.html"),
        SUMMIT: load_fixture("article_no_image.html"),
        og_image: png_bytes(400, 300),
    })
    batch = asyncio.run(_service(client).fetch_latest_news(limit=10))

    assert batch.lead_image.url == og_image
    assert batch.lead_image.data_uri is not None


def _listing(hrefs):
    items = "".join(
        f'<article class="post-item"><h2 class="title"><a href="{href}">Story number {i} from the newsroom</a></h2>'
        f'<span class="meta">1 hour ago</span></article>'
        for i, href in enumerate(hrefs)
    )
    return f"<html><body><main>{items}</main></body></html>"


def test_candidates_are_capped_at_twice_the_limit():
    hrefs = [f"/category/nation/2025/01/15/story-{i}/" for i in range(10)]
    client = mock_client({NATION: _listing(hrefs), WORLD: load_fixture("listing_empty.html")})

    batch = asyncio.run(_service(client, with_images=False).fetch_latest_news(limit=2))

    article_requests = [url for url in client.requested if "/story-" in url]
    assert len(article_requests) == 4
    assert len(batch.articles) == 2


def test_fetch_warnings_do_not_leak_urls(caplog):
    tokenized = "/category/nation/2025/01/15/tokenized/?token=abc123"
    client = mock_client({
        NATION: _listing([tokenized]),
        WORLD: 500,
    })

    with caplog.at_level(logging.INFO, logger="news_digest.services.news_service"):
        batch = asyncio.run(_service(client, with_images=False).fetch_latest_news(limit=10))

    assert batch.articles[0].content == batch.articles[0].title
    assert "Skipping international section" in caplog.text
    assert "Error fetching content" in caplog.text
    assert "freemalaysiatoday.com" not in caplog.text
    assert "abc123" not in caplog.text


def test_missing_lead_image_warning_hides_url(caplog):
    client = mock_client(_routes(**{LEAD_PHOTO: 404}))

    with caplog.at_level(logging.INFO, logger="news_digest.services.image_service"):
        batch = asyncio.run(_service(client).fetch_latest_news(limit=10))

    assert batch.lead_image.src == LEAD_PHOTO
    assert "Could not embed lead image" in caplog.text
    assert "lead-photo.jpg" not in caplog.text
