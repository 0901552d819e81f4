"""SQLAlchemy models for check history."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class CheckHistory(Base):
    __tablename__ = "check_history"

    id = Column(String(64), primary_key=True)
    timestamp = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    content = Column(Text, nullable=False, default="")
    content_type = Column(String(16), nullable=False, default="text")
    file_name = Column(String(512), nullable=True)
    profile_id = Column(String(256), nullable=False, default="")
    profile_name = Column(String(256), nullable=False, default="")
    language = Column(String(32), nullable=False, default="en")
    score = Column(Integer, nullable=True)
    status = Column(String(16), nullable=False, default="pending")  # pending | completed | failed
    check_id = Column(String(256), nullable=True)
    duration = Column(Integer, nullable=True)  # ms
    issue_count = Column(Integer, nullable=False, default=0)
    goals = Column(JSON, nullable=False, default=list)
    issues = Column(JSON, nullable=False, default=list)
    metrics = Column(JSON, nullable=False, default=list)
