"""Activity trail: append-only records of inbound interactions and action attempts."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.activity_log import ActivityLogEntry

logger = logging.getLogger(__name__)

ACTIVITY_STATUSES = ("success", "failed", "pending", "skipped")


async def record_activity(
    db: AsyncSession,
    *,
    activity_type: str,
    target_username: str,
    status: str,
    user_id: Optional[str] = None,
    automation_id: Optional[str] = None,
    instagram_account_id: Optional[str] = None,
    message: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[ActivityLogEntry]:
    """Append one activity row. A failed write is logged and does not raise."""
    if status not in ACTIVITY_STATUSES:
        raise ValueError(f"Unknown activity status: {status}")
    entry = ActivityLogEntry(
        id=str(uuid.uuid4()),
        user_id=user_id,
        automation_id=automation_id,
        instagram_account_id=instagram_account_id,
        activity_type=activity_type,
        target_username=target_username or "unknown",
        message=message,
        status=status,
        metadata_json=metadata or {},
    )
    try:
        db.add(entry)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Could not record %s activity (%s): %s", activity_type, status, exc)
        return None
    return entry


def _month_start(now: Optional[datetime] = None) -> datetime:
    current = now or datetime.now(timezone.utc)
    return current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


async def count_monthly_activity(
    db: AsyncSession,
    user_id: str,
    activity_type: str,
    *,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """Rows of `activity_type` this calendar month; every status counts unless `status` is given."""
    query = select(func.count(ActivityLogEntry.id)).where(
        ActivityLogEntry.user_id == user_id,
        ActivityLogEntry.activity_type == activity_type,
        ActivityLogEntry.created_at >= _month_start(now),
    )
    if status is not None:
        query = query.where(ActivityLogEntry.status == status)
    result = await db.execute(query)
    return int(result.scalar() or 0)


def serialize_activity(entry: ActivityLogEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "automation_id": entry.automation_id,
        "activity_type": entry.activity_type,
        "target_username": entry.target_username,
        "message": entry.message,
        "status": entry.status,
        "metadata": entry.metadata_json or {},
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
