import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func

from news_digest.core.exceptions import NotFoundError
from news_digest.models import (
    Base, DigestRow, EmailLogRow, SettingRow, SystemLogRow, make_engine, make_session_factory,
)
from news_digest.schemas import Article, Digest, EmailLog, Setting, SystemLog, utcnow
from news_digest.storage.base import Storage, check_status_transition

logger = logging.getLogger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops the offset on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_digest(row: DigestRow) -> Digest:
    return Digest(
        id=row.id,
        title=row.title,
        content=row.content,
        word_count=row.word_count,
        articles=[Article.model_validate(a) for a in row.articles or []],
        status=row.status,
        created_at=_aware(row.created_at),
    )


def _to_email_log(row: EmailLogRow) -> EmailLog:
    return EmailLog(
        id=row.id,
        digest_id=row.digest_id,
        recipient=row.recipient,
        subject=row.subject,
        status=row.status,
        error=row.error,
        sent_at=_aware(row.sent_at),
        created_at=_aware(row.created_at),
    )


def _to_system_log(row: SystemLogRow) -> SystemLog:
    return SystemLog(id=row.id, type=row.type, message=row.message, details=row.details,
                     created_at=_aware(row.created_at))


def _to_setting(row: SettingRow) -> Setting:
    return Setting(key=row.key, value=row.value, updated_at=_aware(row.updated_at))


class SQLStorage(Storage):
    """SQLAlchemy-backed store for any database URL"""

    def __init__(self, database_url: str = "sqlite://"):
        self.engine = make_engine(database_url)
        self._Session = make_session_factory(self.engine)
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"SQL storage ready ({self.engine.dialect.name})")

    # Digests
    def create_digest(self, title: str, content: str, word_count: int,
                      articles: Sequence[Article], status: str = "generated") -> Digest:
        row = DigestRow(
            id=str(uuid.uuid4()),
            title=title,
            content=content,
            word_count=word_count,
            articles=[a.model_dump(mode="json") for a in articles],
            status=status,
            created_at=utcnow(),
        )
        with self._Session() as session:
            session.add(row)
            session.commit()
            return _to_digest(row)

    def get_digest(self, digest_id: str) -> Optional[Digest]:
        with self._Session() as session:
            row = session.query(DigestRow).filter(DigestRow.id == digest_id).first()
            return _to_digest(row) if row else None

    def list_digests(self, limit: int = 10, offset: int = 0) -> List[Digest]:
        with self._Session() as session:
            rows = session.query(DigestRow).order_by(DigestRow.seq.desc()).offset(offset).limit(limit).all()
            return [_to_digest(row) for row in rows]

    def update_digest_status(self, digest_id: str, status: str) -> Digest:
        with self._Session() as session:
            row = session.query(DigestRow).filter(DigestRow.id == digest_id).with_for_update().first()
            if row is None:
                raise NotFoundError(f"Digest {digest_id} not found")
            check_status_transition(row.status, status)
            row.status = status
            session.commit()
            return _to_digest(row)

    def count_digests(self) -> int:
        with self._Session() as session:
            return session.query(func.count(DigestRow.seq)).scalar() or 0

    # Email logs
    def create_email_log(self, digest_id: str, recipient: str, subject: str, status: str,
                         error: Optional[str] = None, sent_at: Optional[datetime] = None) -> EmailLog:
        row = EmailLogRow(
            id=str(uuid.uuid4()),
            digest_id=digest_id,
            recipient=recipient,
            subject=subject,
            status=status,
            error=error,
            sent_at=sent_at,
            created_at=utcnow(),
        )
        with self._Session() as session:
            session.add(row)
            session.commit()
            return _to_email_log(row)

    def list_email_logs(self, limit: int = 50, offset: int = 0) -> List[EmailLog]:
        with self._Session() as session:
            rows = session.query(EmailLogRow).order_by(EmailLogRow.seq.desc()).offset(offset).limit(limit).all()
            return [_to_email_log(row) for row in rows]

    def list_email_logs_for_digest(self, digest_id: str) -> List[EmailLog]:
        with self._Session() as session:
            rows = (
                session.query(EmailLogRow)
                .filter(EmailLogRow.digest_id == digest_id)
                .order_by(EmailLogRow.seq.asc())
                .all()
            )
            return [_to_email_log(row) for row in rows]

    def count_email_logs(self, status: Optional[str] = None) -> int:
        with self._Session() as session:
            query = session.query(func.count(EmailLogRow.seq))
            if status is not None:
                query = query.filter(EmailLogRow.status == status)
            return query.scalar() or 0

    # System logs
    def create_system_log(self, type: str, message: str, details: Optional[Dict[str, Any]] = None) -> SystemLog:
        row = SystemLogRow(id=str(uuid.uuid4()), type=type, message=message, details=details,
                           created_at=utcnow())
        with self._Session() as session:
            session.add(row)
            session.commit()
            return _to_system_log(row)

    def list_system_logs(self, limit: int = 50, offset: int = 0) -> List[SystemLog]:
        with self._Session() as session:
            rows = session.query(SystemLogRow).order_by(SystemLogRow.seq.desc()).offset(offset).limit(limit).all()
            return [_to_system_log(row) for row in rows]

    # Settings
    def get_setting(self, key: str) -> Optional[Setting]:
        with self._Session() as session:
            row = session.get(SettingRow, key)
            return _to_setting(row) if row else None

    def set_setting(self, key: str, value: str) -> Setting:
        with self._Session() as session:
            row = session.get(SettingRow, key)
            if row is None:
                row = SettingRow(key=key)
                session.add(row)
            row.value = str(value)
            row.updated_at = utcnow()
            session.commit()
            return _to_setting(row)

    def list_settings(self) -> List[Setting]:
        with self._Session() as session:
            return [_to_setting(row) for row in session.query(SettingRow).order_by(SettingRow.key).all()]
