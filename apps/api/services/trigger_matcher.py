"""Evaluate an automation's trigger config against an inbound event."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from pydantic import ValidationError

from config import settings
from models.automation import Automation
from services.automation_types import (
    DirectMessageTrigger,
    PostCommentTrigger,
    StoryReplyTrigger,
    TriggerConfig,
    parse_trigger_config,
)
from services.events import InboundEvent, trigger_types_for_event

logger = logging.getLogger(__name__)


def keyword_match(keywords: Iterable[str], text: Optional[str]) -> bool:
    """True when any non-empty keyword is a case-insensitive substring of text."""
    if not text:
        return False
    haystack = text.lower()
    return any(keyword.strip() and keyword.strip().lower() in haystack for keyword in keywords)


def _match_post_comment(config: PostCommentTrigger, event: InboundEvent, enforce_targets: bool) -> bool:
    if enforce_targets and config.posts_type == "specific":
        if not event.media_id or event.media_id not in config.specific_posts:
            return False
    if config.comments_type == "all":
        return True
    if config.comments_type == "keywords":
        return keyword_match(config.keywords, event.text)
    return False


def _match_direct_message(config: DirectMessageTrigger, event: InboundEvent) -> bool:
    if config.message_type == "all":
        return True
    if config.message_type == "keywords":
        return keyword_match(config.keywords, event.text)
    return False


def _match_story_reply(config: StoryReplyTrigger, event: InboundEvent, enforce_targets: bool) -> bool:
    if config.stories_type == "all":
        return True
    if config.stories_type == "specific" and enforce_targets:
        return bool(event.story_id) and event.story_id in config.specific_stories
    return False


def matches_config(config: TriggerConfig, event: InboundEvent, *, enforce_targets: bool = False) -> bool:
    if isinstance(config, PostCommentTrigger):
        return _match_post_comment(config, event, enforce_targets)
    if isinstance(config, DirectMessageTrigger):
        return _match_direct_message(config, event)
    if isinstance(config, StoryReplyTrigger):
        return _match_story_reply(config, event, enforce_targets)
    raise TypeError(f"Unhandled trigger config variant: {type(config).__name__}")


def matches(automation: Automation, event: InboundEvent, *, enforce_targets: Optional[bool] = None) -> bool:
    """Return True when the automation's trigger fires for the event."""
    if automation.trigger_type not in trigger_types_for_event(event):
        return False
    try:
        config = parse_trigger_config(automation.trigger_type, automation.trigger_config)
    except (ValidationError, ValueError) as exc:
        logger.warning("Automation %s has an unreadable trigger config: %s", automation.id, exc)
        return False
    enforce = settings.ENFORCE_SPECIFIC_TARGETS if enforce_targets is None else enforce_targets
    return matches_config(config, event, enforce_targets=bool(enforce))
