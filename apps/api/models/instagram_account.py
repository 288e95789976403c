"""Connected Instagram account model."""

from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class InstagramAccount(Base):
    """Platform account connected by a user; `instagram_user_id` is the webhook entry id."""

    __tablename__ = "instagram_accounts"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    instagram_user_id = Column(String, nullable=False, index=True)
    username = Column(String, nullable=True)
    access_token_encrypted = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="active", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="instagram_accounts")
    automations = relationship("Automation", back_populates="instagram_account")
