from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from .database import Base


class EmailLogRow(Base):
    __tablename__ = "email_logs"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False)
    digest_id = Column(String(36), ForeignKey("digests.id"), nullable=False, index=True)
    recipient = Column(String(320), nullable=False)
    subject = Column(String(255), nullable=False)
    status = Column(String(16), nullable=False)
    error = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
