import io
import smtplib
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest
from PIL import Image

from news_digest.config import Settings
from news_digest.services.email_service import EmailService
from news_digest.services.llm.base import BaseLLMProvider
from news_digest.services.llm_service import LLMService
from news_digest.services.rate_limiter import RateLimiter
from news_digest.storage import MemoryStorage

FIXTURES = Path(__file__).parent / "fixtures"
NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
BASE_URL = "https://www.freemalaysiatoday.com"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def png_bytes(width: int = 1200, height: int = 800) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), (200, 30, 30, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


def mock_client(routes: dict) -> httpx.AsyncClient:
    """Serve fixed responses by URL; unknown URLs get a 404"""
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        requested.append(url)
        route = routes.get(url)
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        if isinstance(route, bytes):
            return httpx.Response(200, content=route, headers={"content-type": "image/png"})
        if isinstance(route, int):
            return httpx.Response(route, text="error")
        return httpx.Response(200, text=route, headers={"content-type": "text/html"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client.requested = requested
    return client


class FakeProvider(BaseLLMProvider):
    """Returns a canned response or raises the configured error"""

    def __init__(self, response: str = "", error: Exception = None):
        super().__init__("fake", {"model": "fake-model"})
        self.response = response
        self.error = error
        self.calls = []

    async def generate(self, prompt, system=None, json_mode=False, **kwargs):
        self.calls.append({"prompt": prompt, "system": system, "json_mode": json_mode})
        if self.error:
            raise self.error
        return self.response

    def is_available(self):
        return True

    async def health_check(self):
        return {"status": "healthy"}


class FakeTransport:
    """Records sent messages; refuses the addresses in `fail_for`"""

    def __init__(self, fail_for=(), verify_error: Exception = None):
        self.fail_for = set(fail_for)
        self.verify_error = verify_error
        self.sent = []
        self.verified = 0

    def verify(self):
        self.verified += 1
        if self.verify_error:
            raise self.verify_error

    def send(self, message):
        if message["To"] in self.fail_for:
            raise smtplib.SMTPRecipientsRefused({message["To"]: (550, b"Mailbox unavailable")})
        self.sent.append(message)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def rate_limiter(settings, clock):
    return RateLimiter.from_settings(settings, clock=clock)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def fake_provider():
    return FakeProvider('{"title": "Test Digest", "content": "<p>word word word</p>"}')


@pytest.fixture
def llm_service(fake_provider):
    return LLMService(providers={"fake": fake_provider})


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def email_service(transport, rate_limiter):
    return EmailService(transport, rate_limiter, sender="digest@example.com")
