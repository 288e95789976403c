"""Per-account admission ceiling counted against the processed-event ledger."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.processed_event import ProcessedEvent

logger = logging.getLogger(__name__)


async def count_recent_admissions(
    db: AsyncSession,
    account_id: str,
    window_seconds: int,
    now: Optional[datetime] = None,
) -> int:
    current = now or datetime.now(timezone.utc)
    cutoff = current - timedelta(seconds=max(int(window_seconds), 1))
    result = await db.execute(
        select(func.count(ProcessedEvent.id)).where(
            ProcessedEvent.account_id == account_id,
            ProcessedEvent.created_at >= cutoff,
        )
    )
    return int(result.scalar() or 0)


async def allow(
    db: AsyncSession,
    account_id: str,
    *,
    limit: Optional[int] = None,
    window_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Return False once the account has `limit` admissions in the trailing window.

    Count and ledger insert are separate statements, so a concurrent burst at the
    boundary can admit slightly more than the ceiling.
    """
    ceiling = int(settings.WEBHOOK_RATE_LIMIT_PER_WINDOW if limit is None else limit)
    window = int(settings.WEBHOOK_RATE_WINDOW_SECONDS if window_seconds is None else window_seconds)
    if ceiling <= 0:
        return True
    try:
        recent = await count_recent_admissions(db, account_id, window, now=now)
    except SQLAlchemyError as exc:
        logger.error("Rate limit check failed for account %s: %s", account_id, exc)
        return True
    if recent >= ceiling:
        logger.warning(
            "Rate limit exceeded for account %s: %s admissions in %ss (limit %s)",
            account_id,
            recent,
            window,
            ceiling,
        )
        return False
    return True
