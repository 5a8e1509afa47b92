from .base import (
    EMAIL_RECIPIENTS, LAST_DIGEST_TIME, SCHEDULE_ENABLED, SCHEDULE_INTERVAL, Storage,
)
from .memory import MemoryStorage


def create_storage(database_url: str = "") -> Storage:
    """Memory store for an empty URL, SQLAlchemy store otherwise"""
    if not database_url:
        return MemoryStorage()

    from .sql import SQLStorage
    return SQLStorage(database_url)


__all__ = [
    "Storage", "MemoryStorage", "create_storage",
    "SCHEDULE_ENABLED", "SCHEDULE_INTERVAL", "EMAIL_RECIPIENTS", "LAST_DIGEST_TIME",
]
