"""Background processing of a verified webhook delivery.

normalize -> rate limit -> dedup admission -> route resolution, then either
dispatch to the workflow engine or run matched automations in-process,
depending on AUTOMATION_EXECUTION_MODE.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from models.automation import Automation
from models.automation_route import AutomationRoute
from models.instagram_account import InstagramAccount
from models.user import User
from services import event_rate_limit
from services.action_executor import execute_actions
from services.crypto import decrypt_access_token
from services.dedup_ledger import Admission, admit
from services.dispatcher import WorkflowExecutor, dispatch_event
from services.errors import MessagingApiError
from services.events import InboundEvent, normalize_delivery
from services.messaging_api import InstagramMessagingClient, build_messaging_client
from services.routing import resolve_routes
from services.trigger_matcher import matches
from services.workflow_engine import build_workflow_engine_client

logger = logging.getLogger(__name__)


class EventOutcome(str, enum.Enum):
    RATE_LIMITED = "rate_limited"
    DUPLICATE = "duplicate"
    NO_ROUTE = "no_route"
    DISPATCHED = "dispatched"
    EXECUTED = "executed"
    ERROR = "error"


@dataclass(frozen=True)
class ProcessedOutcome:
    event_id: str
    account_id: str
    outcome: EventOutcome


class WebhookPipeline:
    """Processes parsed webhook bodies. Every event is handled in isolation."""

    def __init__(
        self,
        *,
        session_maker: Callable[[], Any],
        messaging: InstagramMessagingClient,
        engine: Optional[WorkflowExecutor] = None,
        mode: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.session_maker = session_maker
        self.messaging = messaging
        self.engine = engine
        self.mode = mode or settings.AUTOMATION_EXECUTION_MODE
        self.rng = rng

    async def process_delivery(self, body: Mapping[str, Any]) -> List[ProcessedOutcome]:
        events = normalize_delivery(body)
        logger.info("Processing %d event(s) from webhook delivery", len(events))
        outcomes: List[ProcessedOutcome] = []
        for event in events:
            try:
                outcome = await self.process_event(event)
            except Exception:
                logger.exception("Unhandled error processing event %s for account %s", event.event_id, event.account_id)
                outcome = EventOutcome.ERROR
            outcomes.append(ProcessedOutcome(event.event_id, event.account_id, outcome))
        return outcomes

    async def process_event(self, event: InboundEvent) -> EventOutcome:
        async with self.session_maker() as db:
            if not await event_rate_limit.allow(db, event.account_id):
                return EventOutcome.RATE_LIMITED

            if await admit(db, event.event_id, event.account_id) is Admission.DUPLICATE:
                return EventOutcome.DUPLICATE

            routes = await resolve_routes(db, event.account_id, event.event_type, event.sub_type)
            if not routes:
                return EventOutcome.NO_ROUTE

            if self.mode == "engine":
                summary = await dispatch_event(event, routes, self.engine, self.session_maker)
                logger.info(
                    "Event %s dispatched: %d succeeded, %d failed",
                    event.event_id,
                    len(summary.succeeded),
                    len(summary.failed),
                )
                return EventOutcome.DISPATCHED

            await self._run_direct(db, event, routes)
            return EventOutcome.EXECUTED

    async def _active_automations(self, db: AsyncSession, routes: Sequence[AutomationRoute]) -> List[Automation]:
        ordered_ids: List[str] = []
        for route in routes:
            if route.automation_id and route.automation_id not in ordered_ids:
                ordered_ids.append(route.automation_id)
        if not ordered_ids:
            return []
        result = await db.execute(
            select(Automation).where(Automation.id.in_(ordered_ids), Automation.status == "active")
        )
        by_id = {automation.id: automation for automation in result.scalars().all()}
        return [by_id[automation_id] for automation_id in ordered_ids if automation_id in by_id]

    async def _account_for(self, db: AsyncSession, automation: Automation, platform_account_id: str) -> Optional[InstagramAccount]:
        query = select(InstagramAccount).where(
            InstagramAccount.instagram_user_id == platform_account_id,
            InstagramAccount.user_id == automation.user_id,
            InstagramAccount.status == "active",
        )
        if automation.instagram_account_id:
            query = query.where(InstagramAccount.id == automation.instagram_account_id)
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def _dm_limit_for(self, db: AsyncSession, user_id: Optional[str]) -> Optional[int]:
        if not user_id:
            return None
        result = await db.execute(select(User.monthly_dm_limit).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def _resolve_username(self, event: InboundEvent, access_token: str) -> InboundEvent:
        if event.sender_username or not event.sender_id or not settings.RESOLVE_SENDER_PROFILES:
            return event
        try:
            profile = await self.messaging.fetch_profile(event.sender_id, access_token)
        except MessagingApiError as exc:
            logger.warning("Profile lookup failed for sender %s: %s", event.sender_id, exc)
            return event
        username = (profile or {}).get("username") or (profile or {}).get("name")
        return event.with_sender_username(username) if username else event

    async def _run_direct(self, db: AsyncSession, event: InboundEvent, routes: Sequence[AutomationRoute]) -> None:
        automations = await self._active_automations(db, routes)
        tokens: Dict[str, str] = {}
        for automation in automations:
            if not matches(automation, event):
                logger.debug("Automation %s did not match event %s", automation.id, event.event_id)
                continue
            account = await self._account_for(db, automation, event.account_id)
            if account is None:
                logger.warning("No active account %s for automation %s", event.account_id, automation.id)
                continue
            if account.id not in tokens:
                try:
                    tokens[account.id] = decrypt_access_token(account.access_token_encrypted)
                except ValueError as exc:
                    logger.error("Access token unavailable for account %s: %s", account.id, exc)
                    continue
            access_token = tokens[account.id]
            event = await self._resolve_username(event, access_token)
            outcomes = await execute_actions(
                automation,
                event,
                db=db,
                messaging=self.messaging,
                access_token=access_token,
                instagram_account_id=account.id,
                monthly_dm_limit=await self._dm_limit_for(db, automation.user_id),
                rng=self.rng,
            )
            logger.info(
                "Automation %s ran %d action(s) for event %s",
                automation.id,
                len(outcomes),
                event.event_id,
            )


def build_webhook_pipeline() -> WebhookPipeline:
    return WebhookPipeline(
        session_maker=async_session_maker,
        messaging=build_messaging_client(),
        engine=build_workflow_engine_client(),
    )


def process_delivery_job(body: Dict[str, Any]) -> int:
    """RQ entrypoint: process one delivery synchronously inside the worker."""
    outcomes = asyncio.run(build_webhook_pipeline().process_delivery(body))
    return len(outcomes)
