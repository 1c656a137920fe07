"""Notification model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from backend.database import Base
from backend.models.types import UTCDateTime


class Notification(Base):
    """A persisted message for one user."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, nullable=False)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    data = Column(Text)  # JSON payload
    priority = Column(String, default="medium", nullable=False)
    category = Column(String)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
