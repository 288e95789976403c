"""Automation route model."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.sql import func
import uuid

from database import Base


class AutomationRoute(Base):
    """Maps an account/event shape onto the automation or workflow that handles it.

    A NULL `sub_type` is a wildcard over every sub type of `event_type`.
    """

    __tablename__ = "automation_routes"
    __table_args__ = (
        UniqueConstraint("account_id", "workflow_ref", name="uq_automation_routes_account_workflow"),
        Index("ix_automation_routes_lookup", "account_id", "event_type", "is_active"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    automation_id = Column(String, ForeignKey("automations.id", ondelete="CASCADE"), nullable=True, index=True)
    event_type = Column(String, nullable=False)
    sub_type = Column(String, nullable=True)
    workflow_ref = Column(String, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
