from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from .database import Base


class DigestRow(Base):
    __tablename__ = "digests"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    word_count = Column(Integer, nullable=False, default=0)
    articles = Column(JSON, nullable=False, default=list)
    status = Column(String(16), nullable=False, default="generated")
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
