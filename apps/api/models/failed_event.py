"""Dead-letter record for failed workflow dispatches."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, DateTime, JSON, String, Text
from sqlalchemy.sql import func

from database import Base


class FailedEvent(Base):
    """Diagnostic trail for dispatch failures. Never consumed automatically."""

    __tablename__ = "failed_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String, nullable=True, index=True)
    account_id = Column(String, nullable=True, index=True)
    workflow_ref = Column(String, nullable=True)
    payload = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now(), index=True)
