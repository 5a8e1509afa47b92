"""
Application entry point
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from news_digest.api.routes import router
from news_digest.config import Settings, settings as default_settings
from news_digest.core.digest_service import DigestService
from news_digest.scheduler.digest_scheduler import DigestScheduler
from news_digest.services.digest_composer import DigestComposer
from news_digest.services.email_service import EmailService, SMTPTransport
from news_digest.services.image_service import ImageService
from news_digest.services.llm_service import LLMService
from news_digest.services.news_service import DEFAULT_HEADERS, NewsService
from news_digest.services.ranking_service import RelevanceRanker
from news_digest.services.rate_limiter import RateLimiter
from news_digest.storage import create_storage

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_components(settings: Settings) -> Dict[str, Any]:
    """Wire every service from settings"""
    client = httpx.AsyncClient(headers=DEFAULT_HEADERS, follow_redirects=True, timeout=30.0)
    storage = create_storage(settings.DATABASE_URL)
    rate_limiter = RateLimiter.from_settings(settings)
    ranker = RelevanceRanker(settings.RELEVANCE_KEYWORDS)
    llm_service = LLMService(settings)

    news_service = NewsService(
        client,
        ranker,
        rate_limiter=rate_limiter,
        image_service=ImageService(client, rate_limiter=rate_limiter),
        base_url=settings.SOURCE_URL,
        sections=[(settings.DOMESTIC_SECTION, "domestic"), (settings.INTERNATIONAL_SECTION, "international")],
        media_path=settings.MEDIA_PATH,
        retention_hours=settings.RETENTION_HOURS,
        article_timeout=settings.ARTICLE_TIMEOUT,
    )
    email_service = EmailService(
        SMTPTransport(
            settings.SMTP_HOST,
            settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
        ),
        rate_limiter,
        sender=settings.EMAIL_FROM,
        timezone_name=settings.TIMEZONE,
    )
    digest_service = DigestService(
        news_service,
        ranker,
        DigestComposer(llm_service, rate_limiter),
        email_service,
        storage,
        news_limit=settings.NEWS_LIMIT,
    )

    return {
        "http_client": client,
        "storage": storage,
        "rate_limiter": rate_limiter,
        "llm_service": llm_service,
        "digest_service": digest_service,
        "scheduler": DigestScheduler(digest_service, storage, timezone=settings.TIMEZONE),
    }


def create_app(settings: Optional[Settings] = None, components: Optional[Dict[str, Any]] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Overrides the environment settings
        components: Prebuilt services (storage, llm_service, scheduler, ...), built from settings when omitted
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Starting news digest service...")
        parts = components if components is not None else build_components(settings)
        for name, component in parts.items():
            setattr(app.state, name, component)

        app.state.storage.initialize_defaults(
            settings.DEFAULT_RECIPIENTS,
            interval_hours=settings.DEFAULT_INTERVAL_HOURS,
        )
        app.state.scheduler.restore_from_settings()
        logger.info("✅ Service started")

        yield

        logger.info("🛑 Stopping service...")
        app.state.scheduler.shutdown()
        client = parts.get("http_client")
        if client is not None:
            await client.aclose()
        logger.info("✅ Service stopped")

    app = FastAPI(
        title="News Digest API",
        description="Scheduled AI news digests delivered by email",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    import uvicorn

    configure_logging(default_settings.LOG_LEVEL)
    logger.info("🚀 Launching uvicorn...")
    uvicorn.run(
        "news_digest.main:app",
        host=host or default_settings.API_HOST,
        port=port or default_settings.API_PORT,
        log_level=default_settings.LOG_LEVEL.lower(),
    )


app = create_app()


if __name__ == "__main__":
    run()
