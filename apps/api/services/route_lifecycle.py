"""Automation/route lifecycle: created (inactive) -> activated -> deactivated -> deleted."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Protocol, Tuple

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.automation import Automation
from models.automation_route import AutomationRoute
from models.instagram_account import InstagramAccount
from services.automation_types import dump_action, parse_action, parse_trigger_config
from services.errors import WorkflowEngineError
from services.events import EVENT_TYPE_CHANGES, EVENT_TYPE_MESSAGING

logger = logging.getLogger(__name__)

# trigger_type -> (event_type, sub_type) the route listens on
ROUTE_SHAPES: Dict[str, Tuple[str, Optional[str]]] = {
    "user_directed_messages": (EVENT_TYPE_MESSAGING, "message"),
    "post_comment": (EVENT_TYPE_CHANGES, "comments"),
    # Story replies arrive as DMs carrying message.reply_to.story.
    "story_reply": (EVENT_TYPE_MESSAGING, "message"),
}


class WorkflowLifecycle(Protocol):
    async def activate(self, workflow_ref: str) -> Any: ...

    async def deactivate(self, workflow_ref: str) -> Any: ...

    async def delete(self, workflow_ref: str) -> Any: ...


def route_shape_for(trigger_type: str) -> Tuple[str, Optional[str]]:
    shape = ROUTE_SHAPES.get(trigger_type)
    if shape is None:
        raise HTTPException(status_code=400, detail=f"Unsupported trigger type: {trigger_type}")
    return shape


async def _owned_automation(db: AsyncSession, user_id: str, workflow_ref: str) -> Automation:
    result = await db.execute(select(Automation).where(Automation.workflow_ref == workflow_ref))
    automation = result.scalar_one_or_none()
    if automation is None:
        raise HTTPException(status_code=404, detail="Workflow not found.")
    if automation.user_id != user_id:
        raise HTTPException(status_code=403, detail="Workflow does not belong to the authenticated user.")
    return automation


async def _linked_account(db: AsyncSession, automation: Automation) -> InstagramAccount:
    if not automation.instagram_account_id:
        raise HTTPException(status_code=400, detail="Automation is not linked to an Instagram account.")
    result = await db.execute(
        select(InstagramAccount).where(
            InstagramAccount.id == automation.instagram_account_id,
            InstagramAccount.user_id == automation.user_id,
        )
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise HTTPException(status_code=400, detail="Linked Instagram account not found.")
    return account


async def _routes_for(db: AsyncSession, automation: Automation) -> List[AutomationRoute]:
    result = await db.execute(
        select(AutomationRoute).where(
            AutomationRoute.workflow_ref == automation.workflow_ref,
            AutomationRoute.user_id == automation.user_id,
        )
    )
    return list(result.scalars().all())


async def create_automation(
    db: AsyncSession,
    user_id: str,
    *,
    name: str,
    trigger_type: str,
    trigger_config: Optional[Dict[str, Any]],
    actions: List[Dict[str, Any]],
    instagram_account_id: Optional[str] = None,
    workflow_ref: Optional[str] = None,
) -> Automation:
    """Validate and store a new automation in the inactive state."""
    try:
        config = parse_trigger_config(trigger_type, trigger_config)
        parsed_actions = [parse_action(action) for action in actions]
    except (ValidationError, ValueError, TypeError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if not parsed_actions:
        raise HTTPException(status_code=422, detail="An automation needs at least one action.")

    if instagram_account_id:
        result = await db.execute(
            select(InstagramAccount.id).where(
                InstagramAccount.id == instagram_account_id,
                InstagramAccount.user_id == user_id,
            )
        )
        if result.scalar_one_or_none() is None:
            raise HTTPException(status_code=404, detail="Instagram account not found.")

    ref = (workflow_ref or "").strip() or str(uuid.uuid4())
    existing = await db.execute(select(Automation.id).where(Automation.workflow_ref == ref))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="workflow_ref is already in use.")

    automation = Automation(
        id=str(uuid.uuid4()),
        user_id=user_id,
        instagram_account_id=instagram_account_id,
        name=name.strip() or "Untitled automation",
        trigger_type=trigger_type,
        trigger_config=config.model_dump(mode="json", exclude={"kind"}),
        actions=[dump_action(action) for action in parsed_actions],
        status="inactive",
        workflow_ref=ref,
    )
    db.add(automation)
    await db.commit()
    await db.refresh(automation)
    return automation


async def activate_route(
    db: AsyncSession,
    user_id: str,
    workflow_ref: str,
    engine: Optional[WorkflowLifecycle] = None,
) -> AutomationRoute:
    """
    Upsert the active route and mark the automation active, then activate the
    workflow in the engine. The route is committed before the engine call, so
    an engine failure (HTTP 502) leaves the route active.
    """
    automation = await _owned_automation(db, user_id, workflow_ref)
    account = await _linked_account(db, automation)
    event_type, sub_type = route_shape_for(automation.trigger_type)

    result = await db.execute(
        select(AutomationRoute).where(
            AutomationRoute.account_id == account.instagram_user_id,
            AutomationRoute.workflow_ref == workflow_ref,
        )
    )
    route = result.scalar_one_or_none()
    if route is None:
        route = AutomationRoute(
            id=str(uuid.uuid4()),
            account_id=account.instagram_user_id,
            workflow_ref=workflow_ref,
        )
        db.add(route)
    route.user_id = user_id
    route.automation_id = automation.id
    route.event_type = event_type
    route.sub_type = sub_type
    route.is_active = True
    automation.status = "active"
    await db.commit()
    await db.refresh(route)
    logger.info("Route %s active for account %s (%s/%s)", workflow_ref, account.instagram_user_id, event_type, sub_type)

    if engine is not None:
        try:
            await engine.activate(workflow_ref)
        except WorkflowEngineError as exc:
            logger.error("Workflow engine activation failed for %s: %s", workflow_ref, exc)
            raise HTTPException(status_code=502, detail=f"Route saved but engine activation failed: {exc}") from exc
    return route


async def deactivate_route(
    db: AsyncSession,
    user_id: str,
    workflow_ref: str,
    engine: Optional[WorkflowLifecycle] = None,
) -> int:
    """Deactivate in the engine (best-effort), then always flag routes and automation inactive."""
    automation = await _owned_automation(db, user_id, workflow_ref)

    if engine is not None:
        try:
            await engine.deactivate(workflow_ref)
        except WorkflowEngineError as exc:
            logger.warning("Workflow engine deactivation failed for %s: %s", workflow_ref, exc)

    routes = await _routes_for(db, automation)
    for route in routes:
        route.is_active = False
    automation.status = "inactive"
    await db.commit()
    return len(routes)


async def delete_automation(
    db: AsyncSession,
    user_id: str,
    workflow_ref: str,
    engine: Optional[WorkflowLifecycle] = None,
) -> str:
    """Delete the automation and its routes. Ownership is checked before anything changes."""
    automation = await _owned_automation(db, user_id, workflow_ref)
    automation_id = automation.id

    if engine is not None:
        try:
            await engine.delete(workflow_ref)
        except WorkflowEngineError as exc:
            logger.warning("Workflow engine delete failed for %s: %s", workflow_ref, exc)

    await db.execute(
        delete(AutomationRoute).where(
            AutomationRoute.workflow_ref == workflow_ref,
            AutomationRoute.user_id == user_id,
        )
    )
    await db.delete(automation)
    await db.commit()
    logger.info("Deleted automation %s (%s)", automation_id, workflow_ref)
    return automation_id
