"""Automation activity log model."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.sql import func

from database import Base


class ActivityLogEntry(Base):
    """Append-only record of one action attempt or inbound interaction."""

    __tablename__ = "automation_activities"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    automation_id = Column(String, ForeignKey("automations.id", ondelete="SET NULL"), nullable=True, index=True)
    instagram_account_id = Column(String, ForeignKey("instagram_accounts.id"), nullable=True, index=True)
    activity_type = Column(String, nullable=False, index=True)
    target_username = Column(String, nullable=False)
    message = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="success", index=True)  # success, failed, pending, skipped
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now(), index=True)
