"""Read-only activity and dead-letter timelines for the authenticated user."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.activity_log import ActivityLogEntry
from models.automation_route import AutomationRoute
from models.failed_event import FailedEvent
from routers.auth_scope import AuthContext, get_auth_context, resolve_user_scope
from services.activity import ACTIVITY_STATUSES, serialize_activity

router = APIRouter()


@router.get("")
async def list_activity(
    user_id: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    automation_id: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    scoped_user_id = resolve_user_scope(auth, user_id)
    query = select(ActivityLogEntry).where(ActivityLogEntry.user_id == scoped_user_id)
    if status:
        if status not in ACTIVITY_STATUSES:
            return {"activities": [], "count": 0}
        query = query.where(ActivityLogEntry.status == status)
    if automation_id:
        query = query.where(ActivityLogEntry.automation_id == automation_id)
    result = await db.execute(
        query.order_by(ActivityLogEntry.created_at.desc(), ActivityLogEntry.id.desc()).limit(limit)
    )
    activities = [serialize_activity(entry) for entry in result.scalars().all()]
    return {"activities": activities, "count": len(activities)}


@router.get("/failed-events")
async def list_failed_events(
    user_id: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Dead-letter rows for workflows the user owns."""
    scoped_user_id = resolve_user_scope(auth, user_id)
    owned_refs = select(AutomationRoute.workflow_ref).where(AutomationRoute.user_id == scoped_user_id)
    result = await db.execute(
        select(FailedEvent)
        .where(FailedEvent.workflow_ref.in_(owned_refs))
        .order_by(FailedEvent.created_at.desc(), FailedEvent.id.desc())
        .limit(limit)
    )
    rows = result.scalars().all()
    return {
        "failed_events": [
            {
                "id": row.id,
                "event_id": row.event_id,
                "account_id": row.account_id,
                "workflow_ref": row.workflow_ref,
                "error_message": row.error_message,
                "payload": row.payload or {},
                "created_at": row.created_at.isoformat() if row.created_at else None,
            }
            for row in rows
        ],
        "count": len(rows),
    }
