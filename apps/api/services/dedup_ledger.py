"""Idempotency ledger: one atomic insert per event decides admitted vs duplicate."""

from __future__ import annotations

import enum
import logging
import uuid

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.processed_event import ProcessedEvent

logger = logging.getLogger(__name__)


class Admission(str, enum.Enum):
    ADMITTED = "admitted"
    DUPLICATE = "duplicate"


async def admit(db: AsyncSession, event_id: str, account_id: str) -> Admission:
    """
    Record `(event_id, account_id)` in the ledger.

    The unique constraint is the only mutual exclusion: concurrent redeliveries
    race on the insert and exactly one wins. Datastore errors other than the
    constraint violation fail open and admit the event.
    """
    try:
        await db.execute(
            insert(ProcessedEvent).values(
                id=str(uuid.uuid4()),
                event_id=event_id,
                account_id=account_id,
            )
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.debug("Duplicate event %s for account %s skipped", event_id, account_id)
        return Admission.DUPLICATE
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Ledger insert failed for event %s account %s: %s", event_id, account_id, exc)
        return Admission.ADMITTED
    return Admission.ADMITTED
