import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from news_digest.core.exceptions import NotFoundError
from news_digest.schemas import Article, Digest, EmailLog, Setting, SystemLog, utcnow
from news_digest.storage.base import Storage, check_status_transition


class MemoryStorage(Storage):
    """Process-lifetime store; every write holds a single lock"""

    def __init__(self):
        self._digests: Dict[str, Digest] = {}
        self._email_logs: List[EmailLog] = []
        self._system_logs: List[SystemLog] = []
        self._settings: Dict[str, Setting] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _page(items: List, limit: int, offset: int) -> List:
        # Stored in insertion order, newest first on the way out
        newest_first = list(reversed(items))
        return newest_first[offset:offset + limit]

    # Digests
    def create_digest(self, title: str, content: str, word_count: int,
                      articles: Sequence[Article], status: str = "generated") -> Digest:
        digest = Digest(
            id=str(uuid.uuid4()),
            title=title,
            content=content,
            word_count=word_count,
            articles=[a.model_copy() for a in articles],
            status=status,
        )
        with self._lock:
            self._digests[digest.id] = digest
        return digest.model_copy()

    def get_digest(self, digest_id: str) -> Optional[Digest]:
        digest = self._digests.get(digest_id)
        return digest.model_copy() if digest else None

    def list_digests(self, limit: int = 10, offset: int = 0) -> List[Digest]:
        with self._lock:
            digests = list(self._digests.values())
        return [d.model_copy() for d in self._page(digests, limit, offset)]

    def update_digest_status(self, digest_id: str, status: str) -> Digest:
        with self._lock:
            digest = self._digests.get(digest_id)
            if digest is None:
                raise NotFoundError(f"Digest {digest_id} not found")
            check_status_transition(digest.status, status)
            updated = digest.model_copy(update={"status": status})
            self._digests[digest_id] = updated
        return updated.model_copy()

    def count_digests(self) -> int:
        return len(self._digests)

    # Email logs
    def create_email_log(self, digest_id: str, recipient: str, subject: str, status: str,
                         error: Optional[str] = None, sent_at: Optional[datetime] = None) -> EmailLog:
        email_log = EmailLog(
            id=str(uuid.uuid4()),
            digest_id=digest_id,
            recipient=recipient,
            subject=subject,
            status=status,
            error=error,
            sent_at=sent_at,
        )
        with self._lock:
            self._email_logs.append(email_log)
        return email_log

    def list_email_logs(self, limit: int = 50, offset: int = 0) -> List[EmailLog]:
        with self._lock:
            return self._page(self._email_logs, limit, offset)

    def list_email_logs_for_digest(self, digest_id: str) -> List[EmailLog]:
        with self._lock:
            return [log for log in self._email_logs if log.digest_id == digest_id]

    def count_email_logs(self, status: Optional[str] = None) -> int:
        with self._lock:
            return sum(1 for log in self._email_logs if status is None or log.status == status)

    # System logs
    def create_system_log(self, type: str, message: str, details: Optional[Dict[str, Any]] = None) -> SystemLog:
        system_log = SystemLog(id=str(uuid.uuid4()), type=type, message=message, details=details)
        with self._lock:
            self._system_logs.append(system_log)
        return system_log

    def list_system_logs(self, limit: int = 50, offset: int = 0) -> List[SystemLog]:
        with self._lock:
            return self._page(self._system_logs, limit, offset)

    # Settings
    def get_setting(self, key: str) -> Optional[Setting]:
        return self._settings.get(key)

    def set_setting(self, key: str, value: str) -> Setting:
        setting = Setting(key=key, value=str(value), updated_at=utcnow())
        with self._lock:
            self._settings[key] = setting
        return setting

    def list_settings(self) -> List[Setting]:
        with self._lock:
            return list(self._settings.values())
