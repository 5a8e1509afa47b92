from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from .database import Base


class SystemLogRow(Base):
    __tablename__ = "system_logs"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False)
    type = Column(String(16), nullable=False)
    message = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
