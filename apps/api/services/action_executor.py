"""Run an automation's ordered actions against the messaging API."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.automation import Automation
from services.activity import count_monthly_activity, record_activity
from services.automation_types import (
    MAX_BUTTONS,
    ActionButton,
    AskToFollowAction,
    ReplyToCommentAction,
    SendDmAction,
    parse_action,
)
from services.events import InboundEvent
from services.messaging_api import SendResult

logger = logging.getLogger(__name__)

USERNAME_PLACEHOLDER = "{{username}}"
FOLLOW_POSTBACK_PAYLOAD = "ASK_TO_FOLLOW"
DM_SKIPPED_ACTIVITY = "send_dm_skipped"
BUTTON_TITLE_MAX = 20

ParsedAction = Union[ReplyToCommentAction, SendDmAction, AskToFollowAction]


class MessageSender(Protocol):
    async def send(self, access_token: str, recipient_id: str, message: Dict[str, Any]) -> SendResult: ...


@dataclass(frozen=True)
class ActionOutcome:
    action_type: str
    status: str
    message_id: Optional[str] = None
    error: Optional[str] = None


def render_message(templates: Sequence[str], username: Optional[str], rng: Optional[random.Random] = None) -> str:
    """Pick one template uniformly at random and substitute the username placeholder."""
    if not templates:
        return ""
    chooser = rng or random
    template = chooser.choice(list(templates))
    return template.replace(USERNAME_PLACEHOLDER, username or "there")


def _button_title(button: ActionButton) -> str:
    return button.text.strip()[:BUTTON_TITLE_MAX]


def build_button(button: ActionButton, calendar_url: Optional[str] = None) -> Dict[str, Any]:
    kind = button.resolved_kind
    if kind == "calendar":
        if not calendar_url:
            raise ValueError("Calendar button configured but CALENDAR_BOOKING_URL is not set")
        return {"type": "web_url", "url": calendar_url, "title": _button_title(button)}
    if kind == "web_url":
        if not button.url:
            raise ValueError(f"web_url button '{button.text}' has no url")
        return {"type": "web_url", "url": button.url, "title": _button_title(button)}
    return {
        "type": "postback",
        "title": _button_title(button),
        "payload": button.payload or button.text.strip().upper(),
    }


def build_outbound_message(
    text: str,
    buttons: Sequence[ActionButton] = (),
    *,
    title: Optional[str] = None,
    calendar_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Plain text without buttons; otherwise a button (or titled card) template with at most 3 buttons."""
    if not buttons:
        return {"text": text}
    rendered = [build_button(button, calendar_url) for button in list(buttons)[:MAX_BUTTONS]]
    if title:
        payload = {
            "template_type": "generic",
            "elements": [{"title": title, "subtitle": text, "buttons": rendered}],
        }
    else:
        payload = {"template_type": "button", "text": text, "buttons": rendered}
    return {"attachment": {"type": "template", "payload": payload}}


def compose_action_message(
    action: ParsedAction,
    username: Optional[str],
    *,
    rng: Optional[random.Random] = None,
    calendar_url: Optional[str] = None,
) -> Tuple[str, Dict[str, Any]]:
    """Return `(rendered_text, outbound_message)` for one action."""
    if isinstance(action, ReplyToCommentAction):
        text = render_message(action.templates, username, rng)
        return text, build_outbound_message(text, action.buttons, calendar_url=calendar_url)
    if isinstance(action, SendDmAction):
        templates = action.templates or [action.message or ""]
        text = render_message(templates, username, rng)
        return text, build_outbound_message(text, action.buttons, title=action.title, calendar_url=calendar_url)
    if isinstance(action, AskToFollowAction):
        text = render_message([action.message], username, rng)
        follow_button = ActionButton(text=action.follow_button_text, kind="postback", payload=FOLLOW_POSTBACK_PAYLOAD)
        return text, build_outbound_message(text, [follow_button])
    raise TypeError(f"Unhandled action variant: {type(action).__name__}")


async def _dm_ceiling_reached(db: AsyncSession, user_id: str, limit: int) -> Optional[int]:
    if limit <= 0:
        return None
    try:
        current = await count_monthly_activity(db, user_id, "send_dm")
    except SQLAlchemyError as exc:
        logger.error("Monthly DM usage check failed for user %s: %s", user_id, exc)
        return None
    return current if current >= limit else None


async def execute_actions(
    automation: Automation,
    event: InboundEvent,
    *,
    db: AsyncSession,
    messaging: MessageSender,
    access_token: str,
    instagram_account_id: Optional[str] = None,
    rng: Optional[random.Random] = None,
    calendar_url: Optional[str] = None,
    monthly_dm_limit: Optional[int] = None,
) -> List[ActionOutcome]:
    """
    Execute every action of the automation in configured order.

    Each action is isolated: a failure is recorded as a `failed` activity and the
    next action still runs. Nothing is retried.
    """
    outcomes: List[ActionOutcome] = []
    username = event.sender_username or event.sender_id or "unknown"
    booking_url = settings.CALENDAR_BOOKING_URL if calendar_url is None else calendar_url
    dm_limit = int(settings.MONTHLY_DM_LIMIT if monthly_dm_limit is None else monthly_dm_limit)
    activity_context = {
        "user_id": automation.user_id,
        "automation_id": automation.id,
        "instagram_account_id": instagram_account_id or automation.instagram_account_id,
        "target_username": username,
    }

    for index, raw_action in enumerate(automation.actions or []):
        action_type = str(raw_action.get("type") or "unknown") if isinstance(raw_action, dict) else "unknown"
        text: Optional[str] = None
        try:
            action = parse_action(raw_action)
            action_type = action.type

            if isinstance(action, SendDmAction):
                current = await _dm_ceiling_reached(db, automation.user_id, dm_limit)
                if current is not None:
                    logger.warning("Monthly DM limit reached for user %s (%s/%s)", automation.user_id, current, dm_limit)
                    await record_activity(
                        db,
                        activity_type=DM_SKIPPED_ACTIVITY,
                        status="skipped",
                        message="Monthly DM limit reached",
                        metadata={"limit": dm_limit, "current": current, "action_index": index},
                        **activity_context,
                    )
                    outcomes.append(ActionOutcome(action_type=action_type, status="skipped"))
                    continue

            if not event.sender_id:
                raise ValueError("Event has no sender id to reply to")
            text, outbound = compose_action_message(
                action,
                event.sender_username,
                rng=rng,
                calendar_url=booking_url,
            )
            result = await messaging.send(access_token, event.sender_id, outbound)
        except (ValidationError, ValueError, TypeError) as exc:
            logger.warning("Automation %s action %s is invalid: %s", automation.id, index, exc)
            await _record_failure(db, action_type, index, exc, text, activity_context)
            outcomes.append(ActionOutcome(action_type=action_type, status="failed", error=str(exc)))
            continue
        except Exception as exc:
            logger.error("Automation %s action %s (%s) failed: %s", automation.id, index, action_type, exc)
            await _record_failure(db, action_type, index, exc, text, activity_context)
            outcomes.append(ActionOutcome(action_type=action_type, status="failed", error=str(exc)))
            continue

        await record_activity(
            db,
            activity_type=action_type,
            status="success",
            message=text,
            metadata={
                "message_id": result.message_id,
                "recipient_id": result.recipient_id,
                "event_id": event.event_id,
                "action_index": index,
            },
            **activity_context,
        )
        outcomes.append(ActionOutcome(action_type=action_type, status="success", message_id=result.message_id))
    return outcomes


async def _record_failure(
    db: AsyncSession,
    action_type: str,
    index: int,
    exc: Exception,
    text: Optional[str],
    activity_context: Dict[str, Any],
) -> None:
    await record_activity(
        db,
        activity_type=action_type,
        status="failed",
        message=text,
        metadata={"error": str(exc), "action_index": index},
        **activity_context,
    )
