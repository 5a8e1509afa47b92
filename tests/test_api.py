import pytest
from fastapi.testclient import TestClient

from news_digest.config import Settings
from news_digest.core.exceptions import FetchError
from news_digest.main import create_app
from news_digest.scheduler.digest_scheduler import DigestScheduler
from news_digest.schemas import Article, RunSummary
from news_digest.storage import MemoryStorage


class StubDigestService:
    def __init__(self, storage, error=None):
        self.storage = storage
        self.error = error

    async def run(self):
        if self.error:
            raise self.error
        digest = self.storage.create_digest(
            "Test Digest", "<p>word word word</p>", 3,
            [Article(title="Malaysia launches new rail line", url="https://example.com/rail")],
        )
        self.storage.update_digest_status(digest.id, "sent")
        self.storage.create_email_log(digest.id, "a@example.com", "FMT News Digest: Test Digest", "sent")
        return RunSummary(digest_id=digest.id, status="sent", total_recipients=1, success_count=1, failed_count=0)


def _client(llm_service, error=None):
    storage = MemoryStorage()
    components = {
        "storage": storage,
        "llm_service": llm_service,
        "scheduler": DigestScheduler(StubDigestService(storage, error), storage),
    }
    app = create_app(Settings(DEFAULT_RECIPIENTS=["admin@example.com"]), components=components)
    return TestClient(app), storage


@pytest.fixture
def api(llm_service):
    client, storage = _client(llm_service)
    with client:
        yield client, storage


def test_health(api):
    client, _ = api
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"]["scheduler"] == "active"
    assert body["services"]["llm"]["active_provider"] == "fake"


def test_startup_seeds_defaults_and_restores_schedule(api):
    client, _ = api
    schedule = client.get("/api/schedule").json()

    assert schedule["enabled"] is True
    assert schedule["interval"] == 3
    assert schedule["recipients"] == ["admin@example.com"]
    assert schedule["is_active"] is True
    assert schedule["next_run"] is not None


def test_trigger_then_browse_digests(api):
    client, _ = api
    result = client.post("/api/digest/trigger").json()
    assert result["success"] is True

    digests = client.get("/api/digests").json()
    assert [d["id"] for d in digests] == [result["digest_id"]]
    assert digests[0]["status"] == "sent"

    digest = client.get(f"/api/digests/{result['digest_id']}").json()
    assert digest["word_count"] == 3

    logs = client.get(f"/api/digests/{result['digest_id']}/email-logs").json()
    assert [log["recipient"] for log in logs] == ["a@example.com"]
    assert client.get("/api/email-logs").json()[0]["status"] == "sent"

    stats = client.get("/api/dashboard/stats").json()
    assert stats["total_digests"] == 1
    assert stats["success_rate"] == 100.0
    assert stats["schedule_active"] is True


def test_trigger_failure_is_reported_in_body(llm_service):
    client, storage = _client(llm_service, error=FetchError("No articles fetched"))
    with client:
        response = client.post("/api/digest/trigger")

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "message": "Digest generation failed: No articles fetched",
            "digest_id": None,
        }
        logs = client.get("/api/logs").json()
        assert logs[0]["type"] == "error"


def test_unknown_digest_is_404(api):
    client, _ = api
    assert client.get("/api/digests/missing").status_code == 404
    assert client.get("/api/digests/missing/email-logs").status_code == 404


def test_pagination_limits(api):
    client, _ = api
    assert client.get("/api/logs", params={"limit": 101}).status_code == 422
    assert client.get("/api/digests", params={"offset": -1}).status_code == 422
    assert client.get("/api/logs", params={"limit": 1}).status_code == 200


def test_toggle_schedule(api):
    client, storage = api

    off = client.post("/api/schedule/toggle").json()
    assert off["is_active"] is False
    assert off["enabled"] is False
    assert storage.get_setting_value("schedule_enabled") == "false"

    on = client.post("/api/schedule/toggle").json()
    assert on["is_active"] is True
    assert on["enabled"] is True


@pytest.mark.parametrize("interval", [0, 25])
def test_interval_out_of_range(api, interval):
    client, storage = api
    response = client.post("/api/schedule/interval", json={"interval": interval})

    assert response.status_code == 400
    assert storage.get_setting_value("schedule_interval") == "3"


def test_interval_update_restarts_schedule(api):
    client, storage = api
    schedule = client.post("/api/schedule/interval", json={"interval": 6}).json()

    assert schedule["interval"] == 6
    assert schedule["is_active"] is True
    assert storage.get_setting_value("schedule_interval") == "6"


def test_recipients(api):
    client, storage = api
    response = client.post("/api/recipients", json={"recipients": ["a@example.com", " b@example.com ", "a@example.com"]})

    assert response.status_code == 200
    assert response.json() == {"recipients": ["a@example.com", "b@example.com"]}
    assert client.get("/api/recipients").json() == {"recipients": ["a@example.com", "b@example.com"]}
    assert storage.get_recipients() == ["a@example.com", "b@example.com"]


def test_invalid_recipient_is_rejected(api):
    client, storage = api
    response = client.post("/api/recipients", json={"recipients": ["a@example.com", "nobody"]})

    assert response.status_code == 400
    assert storage.get_recipients() == ["admin@example.com"]


def test_settings(api):
    client, _ = api
    keys = {s["key"] for s in client.get("/api/settings").json()}
    assert {"schedule_enabled", "schedule_interval", "email_recipients"} <= keys
