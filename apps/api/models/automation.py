"""Automation model."""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Automation(Base):
    """User-configured trigger plus ordered action list."""

    __tablename__ = "automations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    instagram_account_id = Column(String, ForeignKey("instagram_accounts.id"), nullable=True, index=True)
    name = Column(String, nullable=False, default="Untitled automation")
    trigger_type = Column(String, nullable=False, index=True)  # post_comment, story_reply, user_directed_messages
    trigger_config = Column(JSON, nullable=False, default=dict)
    actions = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default="inactive", index=True)
    workflow_ref = Column(String, nullable=True, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="automations")
    instagram_account = relationship("InstagramAccount", back_populates="automations")
