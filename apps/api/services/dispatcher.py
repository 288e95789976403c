"""Fan out an admitted event to the workflow engine, one independent call per route."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.automation_route import AutomationRoute
from models.failed_event import FailedEvent
from services.events import InboundEvent

logger = logging.getLogger(__name__)


class WorkflowExecutor(Protocol):
    async def execute(self, workflow_ref: str, event_payload: dict) -> Any: ...


@dataclass
class DispatchSummary:
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


async def record_failed_event(
    db: AsyncSession,
    event: InboundEvent,
    error_message: str,
    *,
    workflow_ref: Optional[str] = None,
) -> Optional[FailedEvent]:
    """Write a dead-letter row. Storage errors are logged, not raised."""
    record = FailedEvent(
        id=str(uuid.uuid4()),
        event_id=event.event_id,
        account_id=event.account_id,
        workflow_ref=workflow_ref,
        payload=event.as_payload(),
        error_message=error_message[:4000],
    )
    try:
        db.add(record)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Failed to log failed event %s: %s", event.event_id, exc)
        return None
    return record


async def dispatch_event(
    event: InboundEvent,
    routes: Sequence[AutomationRoute],
    engine: Optional[WorkflowExecutor],
    session_maker: Callable[[], Any],
) -> DispatchSummary:
    """Execute each route's workflow; failures go to the dead-letter store and never stop siblings."""
    summary = DispatchSummary()
    payload = event.as_payload()
    for route in routes:
        workflow_ref = route.workflow_ref
        try:
            if engine is None:
                raise RuntimeError("Workflow engine is not configured")
            await engine.execute(workflow_ref, payload)
            summary.succeeded.append(workflow_ref)
            logger.info("Dispatched event %s to workflow %s", event.event_id, workflow_ref)
        except Exception as exc:
            summary.failed.append(workflow_ref)
            logger.error("Failed to trigger workflow %s for event %s: %s", workflow_ref, event.event_id, exc)
            async with session_maker() as db:
                await record_failed_event(db, event, str(exc), workflow_ref=workflow_ref)
    return summary
