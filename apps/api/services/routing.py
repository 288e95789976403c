"""Resolve active automation routes for an event shape."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.automation_route import AutomationRoute

logger = logging.getLogger(__name__)


async def resolve_routes(
    db: AsyncSession,
    account_id: str,
    event_type: str,
    sub_type: Optional[str],
) -> List[AutomationRoute]:
    """Active routes for the account/event type whose sub type matches or is a wildcard."""
    sub_type_clause = AutomationRoute.sub_type.is_(None)
    if sub_type is not None:
        sub_type_clause = or_(AutomationRoute.sub_type == sub_type, AutomationRoute.sub_type.is_(None))

    result = await db.execute(
        select(AutomationRoute)
        .where(
            AutomationRoute.account_id == account_id,
            AutomationRoute.event_type == event_type,
            AutomationRoute.is_active.is_(True),
            sub_type_clause,
        )
        .order_by(AutomationRoute.created_at.asc(), AutomationRoute.id.asc())
    )
    routes = list(result.scalars().all())
    if not routes:
        logger.info(
            "No active routes for account=%s event_type=%s sub_type=%s",
            account_id,
            event_type,
            sub_type,
        )
    return routes
