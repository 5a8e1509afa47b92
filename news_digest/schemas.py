"""
Domain types shared by the pipeline, the stores and the API
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


ArticleCategory = Literal["domestic", "international"]
DigestStatus = Literal["generated", "sent", "failed"]
EmailStatus = Literal["pending", "sent", "failed"]
LogType = Literal["info", "warning", "error"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Article(BaseModel):
    """Article scraped from a listing page"""
    title: str = Field(min_length=1)
    url: str
    raw_content: str = ""
    content: str = Field(default="", max_length=2000)
    published_at: datetime = Field(default_factory=utcnow)
    category: ArticleCategory = "domestic"
    image_url: Optional[str] = None


class LeadImage(BaseModel):
    url: str
    data_uri: Optional[str] = None

    @property
    def src(self) -> str:
        """Embedded data URI when conversion succeeded, otherwise the remote URL"""
        return self.data_uri or self.url


class NewsBatch(BaseModel):
    articles: List[Article] = []
    lead_image: Optional[LeadImage] = None


class DigestDraft(BaseModel):
    title: str
    content: str
    word_count: int = Field(ge=0)


class Digest(BaseModel):
    id: str
    title: str
    content: str
    word_count: int = Field(ge=0)
    articles: List[Article] = []
    status: DigestStatus = "generated"
    created_at: datetime = Field(default_factory=utcnow)


class EmailLog(BaseModel):
    id: str
    digest_id: str
    recipient: str
    subject: str
    status: EmailStatus
    error: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)


class SystemLog(BaseModel):
    id: str
    type: LogType
    message: str
    details: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)


class Setting(BaseModel):
    key: str
    value: str
    updated_at: datetime = Field(default_factory=utcnow)


class SendResult(BaseModel):
    success: bool
    error: Optional[str] = None


class DigestStats(BaseModel):
    total_digests: int
    success_rate: float
    next_digest_time: Optional[str] = None
    last_digest_time: Optional[str] = None
    schedule_active: bool = False
    system_status: str = "Healthy"


class RunSummary(BaseModel):
    digest_id: str
    status: DigestStatus
    total_recipients: int
    success_count: int
    failed_count: int


class TriggerResult(BaseModel):
    success: bool
    message: str
    digest_id: Optional[str] = None
