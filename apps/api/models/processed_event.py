"""Processed webhook event ledger model."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, DateTime, Index, String, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessedEvent(Base):
    """Idempotency ledger row; existence means the event was already admitted."""

    __tablename__ = "processed_events"
    __table_args__ = (
        UniqueConstraint("event_id", "account_id", name="uq_processed_events_event_account"),
        Index("ix_processed_events_account_created", "account_id", "created_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String, nullable=False)
    account_id = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
