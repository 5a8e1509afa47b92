import json

import pytest

from news_digest.core.exceptions import InvalidStatusTransition, NotFoundError
from news_digest.schemas import Article
from news_digest.storage import (
    EMAIL_RECIPIENTS, LAST_DIGEST_TIME, SCHEDULE_ENABLED, SCHEDULE_INTERVAL, MemoryStorage, create_storage,
)
from news_digest.storage.sql import SQLStorage

ARTICLES = [Article(title="Parliament passes Malaysia budget bill", url="https://example.com/a", content="Body")]


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return MemoryStorage()
    return SQLStorage("sqlite://")


def _digest(store, title="Digest"):
    return store.create_digest(title=title, content="<p>a b</p>", word_count=2, articles=ARTICLES)


def test_create_and_get_digest(store):
    digest = _digest(store)
    loaded = store.get_digest(digest.id)

    assert loaded.title == "Digest"
    assert loaded.status == "generated"
    assert loaded.articles[0].title == "Parliament passes Malaysia budget bill"
    assert loaded.created_at.tzinfo is not None
    assert store.get_digest("missing") is None


def test_digests_are_listed_newest_first_with_pagination(store):
    ids = [_digest(store, f"Digest {i}").id for i in range(5)]

    assert [d.id for d in store.list_digests(limit=10)] == list(reversed(ids))
    assert [d.id for d in store.list_digests(limit=2, offset=1)] == [ids[3], ids[2]]
    assert store.count_digests() == 5


@pytest.mark.parametrize("final", ["sent", "failed"])
def test_status_moves_only_from_generated(store, final):
    digest = _digest(store)
    assert store.update_digest_status(digest.id, final).status == final
    assert store.get_digest(digest.id).status == final

    for status in ("generated", "sent", "failed"):
        with pytest.raises(InvalidStatusTransition):
            store.update_digest_status(digest.id, status)


def test_update_unknown_digest(store):
    with pytest.raises(NotFoundError):
        store.update_digest_status("missing", "sent")


def test_email_logs(store):
    digest = _digest(store)
    other = _digest(store, "Other")
    store.create_email_log(digest.id, "a@example.com", "Subject", "sent")
    store.create_email_log(digest.id, "b@example.com", "Subject", "failed", error="Mailbox unavailable")
    store.create_email_log(other.id, "c@example.com", "Subject", "sent")

    for_digest = store.list_email_logs_for_digest(digest.id)
    assert [log.recipient for log in for_digest] == ["a@example.com", "b@example.com"]
    assert for_digest[1].error == "Mailbox unavailable"

    assert [log.recipient for log in store.list_email_logs(limit=2)] == ["c@example.com", "b@example.com"]
    assert store.count_email_logs() == 3
    assert store.count_email_logs(status="sent") == 2


def test_system_logs(store):
    store.create_system_log("info", "first")
    store.create_system_log("error", "second", {"error_type": "FetchError"})

    logs = store.list_system_logs()
    assert [log.message for log in logs] == ["second", "first"]
    assert logs[0].details == {"error_type": "FetchError"}
    assert store.list_system_logs(limit=1, offset=1)[0].message == "first"


def test_settings_last_write_wins(store):
    store.set_setting(SCHEDULE_INTERVAL, "3")
    store.set_setting(SCHEDULE_INTERVAL, "6")

    assert store.get_setting_value(SCHEDULE_INTERVAL) == "6"
    assert store.get_setting_value("unknown", "default") == "default"
    assert [s.key for s in store.list_settings()] == [SCHEDULE_INTERVAL]


def test_recipients_round_trip_as_json(store):
    store.set_recipients(["a@example.com", "b@example.com"])

    assert json.loads(store.get_setting_value(EMAIL_RECIPIENTS)) == ["a@example.com", "b@example.com"]
    assert store.get_recipients() == ["a@example.com", "b@example.com"]


def test_corrupt_recipients_read_as_empty(store):
    store.set_setting(EMAIL_RECIPIENTS, "not json")
    assert store.get_recipients() == []


def test_initialize_defaults_keeps_existing_values(store):
    store.set_setting(SCHEDULE_INTERVAL, "12")
    store.initialize_defaults(["admin@example.com"], interval_hours=3)

    assert store.get_setting_value(SCHEDULE_ENABLED) == "true"
    assert store.get_setting_value(SCHEDULE_INTERVAL) == "12"
    assert store.get_recipients() == ["admin@example.com"]


def test_digest_stats(store):
    digest = _digest(store)
    store.create_email_log(digest.id, "a@example.com", "S", "sent")
    store.create_email_log(digest.id, "b@example.com", "S", "sent")
    store.create_email_log(digest.id, "c@example.com", "S", "sent")
    store.create_email_log(digest.id, "d@example.com", "S", "failed", error="x")
    store.set_setting(SCHEDULE_ENABLED, "true")
    store.set_setting(SCHEDULE_INTERVAL, "3")
    store.set_setting(LAST_DIGEST_TIME, "2025-01-15T09:00:00+00:00")

    stats = store.get_digest_stats()
    assert stats.total_digests == 1
    assert stats.success_rate == 75.0
    assert stats.last_digest_time == "2025-01-15T09:00:00+00:00"
    assert stats.next_digest_time == "2025-01-15T12:00:00+00:00"


def test_stats_have_no_next_time_while_disabled(store):
    store.set_setting(SCHEDULE_ENABLED, "false")
    store.set_setting(SCHEDULE_INTERVAL, "3")
    store.set_setting(LAST_DIGEST_TIME, "2025-01-15T09:00:00+00:00")

    stats = store.get_digest_stats()
    assert stats.last_digest_time == "2025-01-15T09:00:00+00:00"
    assert stats.next_digest_time is None


def test_empty_stats(store):
    stats = store.get_digest_stats()
    assert stats.total_digests == 0
    assert stats.success_rate == 100.0
    assert stats.next_digest_time is None


def test_create_storage():
    assert isinstance(create_storage(""), MemoryStorage)
    assert isinstance(create_storage("sqlite://"), SQLStorage)
