from sqlalchemy import Column, String, DateTime, Text
from .database import Base


class SettingRow(Base):
    __tablename__ = "settings"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
