"""
Repository interface for digests, logs and settings
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from news_digest.core.exceptions import InvalidStatusTransition
from news_digest.schemas import Article, Digest, DigestStats, EmailLog, Setting, SystemLog

SCHEDULE_ENABLED = "schedule_enabled"
SCHEDULE_INTERVAL = "schedule_interval"
EMAIL_RECIPIENTS = "email_recipients"
LAST_DIGEST_TIME = "last_digest_time"

# Allowed digest status changes
STATUS_TRANSITIONS = {
    "generated": {"sent", "failed"},
    "sent": set(),
    "failed": set(),
}


def check_status_transition(current: str, new: str) -> None:
    if new not in STATUS_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransition(f"Digest status cannot change from '{current}' to '{new}'")


class Storage(ABC):
    """Single source of truth for persisted entities"""

    # Digests
    @abstractmethod
    def create_digest(self, title: str, content: str, word_count: int,
                      articles: Sequence[Article], status: str = "generated") -> Digest:
        pass

    @abstractmethod
    def get_digest(self, digest_id: str) -> Optional[Digest]:
        pass

    @abstractmethod
    def list_digests(self, limit: int = 10, offset: int = 0) -> List[Digest]:
        pass

    @abstractmethod
    def update_digest_status(self, digest_id: str, status: str) -> Digest:
        """
        Raises:
            NotFoundError: Unknown digest id
            InvalidStatusTransition: Anything other than generated -> sent|failed
        """
        pass

    @abstractmethod
    def count_digests(self) -> int:
        pass

    # Email logs
    @abstractmethod
    def create_email_log(self, digest_id: str, recipient: str, subject: str, status: str,
                         error: Optional[str] = None, sent_at: Optional[datetime] = None) -> EmailLog:
        pass

    @abstractmethod
    def list_email_logs(self, limit: int = 50, offset: int = 0) -> List[EmailLog]:
        pass

    @abstractmethod
    def list_email_logs_for_digest(self, digest_id: str) -> List[EmailLog]:
        """Email logs of one digest in creation order"""
        pass

    @abstractmethod
    def count_email_logs(self, status: Optional[str] = None) -> int:
        pass

    # System logs
    @abstractmethod
    def create_system_log(self, type: str, message: str, details: Optional[Dict[str, Any]] = None) -> SystemLog:
        pass

    @abstractmethod
    def list_system_logs(self, limit: int = 50, offset: int = 0) -> List[SystemLog]:
        pass

    # Settings
    @abstractmethod
    def get_setting(self, key: str) -> Optional[Setting]:
        pass

    @abstractmethod
    def set_setting(self, key: str, value: str) -> Setting:
        pass

    @abstractmethod
    def list_settings(self) -> List[Setting]:
        pass

    def get_setting_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        setting = self.get_setting(key)
        return setting.value if setting else default

    def get_recipients(self) -> List[str]:
        value = self.get_setting_value(EMAIL_RECIPIENTS)
        if not value:
            return []
        try:
            recipients = json.loads(value)
        except json.JSONDecodeError:
            return []
        return [r for r in recipients if isinstance(r, str) and r] if isinstance(recipients, list) else []

    def set_recipients(self, recipients: Sequence[str]) -> Setting:
        return self.set_setting(EMAIL_RECIPIENTS, json.dumps(list(recipients)))

    def initialize_defaults(self, recipients: Sequence[str], interval_hours: int = 3,
                            enabled: bool = True) -> None:
        """Seed schedule settings that are not set yet"""
        if self.get_setting(SCHEDULE_ENABLED) is None:
            self.set_setting(SCHEDULE_ENABLED, "true" if enabled else "false")
        if self.get_setting(SCHEDULE_INTERVAL) is None:
            self.set_setting(SCHEDULE_INTERVAL, str(interval_hours))
        if self.get_setting(EMAIL_RECIPIENTS) is None:
            self.set_recipients(recipients)

    def get_digest_stats(self) -> DigestStats:
        total_emails = self.count_email_logs()
        sent_emails = self.count_email_logs(status="sent")
        success_rate = (sent_emails / total_emails) * 100 if total_emails else 100.0

        last_digest_time = self.get_setting_value(LAST_DIGEST_TIME)
        next_digest_time = None
        if last_digest_time and self.get_setting_value(SCHEDULE_ENABLED) == "true":
            interval = self.get_setting_value(SCHEDULE_INTERVAL, "3")
            try:
                last = datetime.fromisoformat(last_digest_time)
                next_digest_time = (last + timedelta(hours=int(interval))).isoformat()
            except ValueError:
                next_digest_time = None

        return DigestStats(
            total_digests=self.count_digests(),
            success_rate=round(success_rate, 1),
            next_digest_time=next_digest_time,
            last_digest_time=last_digest_time,
        )
