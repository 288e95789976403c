"""Normalize batched platform webhook entries into canonical inbound events."""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

EVENT_TYPE_MESSAGING = "messaging"
EVENT_TYPE_CHANGES = "changes"

STORY_CHANGE_FIELDS = ("story_insights", "story_mentions", "mentions")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InboundEvent:
    """Canonical form of one platform event. Immutable once built."""

    platform: str
    account_id: str
    event_type: str
    sub_type: str
    payload: Dict[str, Any]
    event_id: str
    sender_id: Optional[str] = None
    sender_username: Optional[str] = None
    text: Optional[str] = None
    media_id: Optional[str] = None
    story_id: Optional[str] = None
    timestamp: Optional[str] = None
    received_at: datetime = field(default_factory=_utcnow)

    def with_sender_username(self, username: Optional[str]) -> "InboundEvent":
        """Return a copy carrying a resolved sender username."""
        return InboundEvent(
            platform=self.platform,
            account_id=self.account_id,
            event_type=self.event_type,
            sub_type=self.sub_type,
            payload=self.payload,
            event_id=self.event_id,
            sender_id=self.sender_id,
            sender_username=username,
            text=self.text,
            media_id=self.media_id,
            story_id=self.story_id,
            timestamp=self.timestamp,
            received_at=self.received_at,
        )

    def as_payload(self) -> Dict[str, Any]:
        """JSON-serializable form handed to the workflow engine and dead-letter store."""
        entry_key = EVENT_TYPE_MESSAGING if self.event_type == EVENT_TYPE_MESSAGING else EVENT_TYPE_CHANGES
        return {
            "platform": self.platform,
            "account_id": self.account_id,
            "event_type": self.event_type,
            "sub_type": self.sub_type,
            "event_id": self.event_id,
            "from": {"id": self.sender_id, "username": self.sender_username},
            "text": self.text,
            "media_id": self.media_id,
            "story_id": self.story_id,
            "timestamp": self.timestamp,
            "received_at": self.received_at.isoformat(),
            "payload": copy.deepcopy(self.payload),
            "entry": [{"id": self.account_id, entry_key: [copy.deepcopy(self.payload)]}],
        }


# Extraction strategies. Each takes the raw sub-structure (a messaging item or a
# change) and returns a value or None; the first non-empty result wins.

Extractor = Callable[[Mapping[str, Any]], Optional[str]]


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def username_from_change_author(item: Mapping[str, Any]) -> Optional[str]:
    return _clean(_as_mapping(_as_mapping(item.get("value")).get("from")).get("username"))


def username_from_sender(item: Mapping[str, Any]) -> Optional[str]:
    return _clean(_as_mapping(item.get("sender")).get("username"))


def username_from_enriched_sender_name(item: Mapping[str, Any]) -> Optional[str]:
    return _clean(item.get("sender_name"))


def text_from_message(item: Mapping[str, Any]) -> Optional[str]:
    return _clean(_as_mapping(item.get("message")).get("text"))


def text_from_change_value(item: Mapping[str, Any]) -> Optional[str]:
    return _clean(_as_mapping(item.get("value")).get("text"))


def text_from_postback(item: Mapping[str, Any]) -> Optional[str]:
    postback = _as_mapping(item.get("postback"))
    return _clean(postback.get("title")) or _clean(postback.get("payload"))


USERNAME_STRATEGIES: Tuple[Extractor, ...] = (
    username_from_change_author,
    username_from_sender,
    username_from_enriched_sender_name,
)

TEXT_STRATEGIES: Tuple[Extractor, ...] = (
    text_from_message,
    text_from_change_value,
    text_from_postback,
)


def first_extracted(item: Mapping[str, Any], strategies: Tuple[Extractor, ...]) -> Optional[str]:
    for strategy in strategies:
        value = strategy(item)
        if value:
            return value
    return None


def payload_hash(payload: Any) -> str:
    """Stable hash of a canonicalized payload: sorted keys, compact separators."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return "hash_" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _messaging_sub_type(item: Mapping[str, Any]) -> str:
    if item.get("message"):
        return "message"
    if item.get("postback"):
        return "postback"
    return "other"


def _is_ignorable_messaging(item: Mapping[str, Any]) -> bool:
    if _as_mapping(item.get("message")).get("is_echo"):
        return True
    return bool(item.get("delivery") or item.get("read"))


def _normalize_messaging(platform: str, account_id: str, item: Mapping[str, Any]) -> InboundEvent:
    message = _as_mapping(item.get("message"))
    postback = _as_mapping(item.get("postback"))
    sub_type = _messaging_sub_type(item)
    event_id = (
        _clean(message.get("mid"))
        or _clean(postback.get("mid"))
        or payload_hash({"account_id": account_id, "event_type": EVENT_TYPE_MESSAGING, "sub_type": sub_type, "payload": item})
    )
    story = _as_mapping(_as_mapping(message.get("reply_to")).get("story"))
    return InboundEvent(
        platform=platform,
        account_id=account_id,
        event_type=EVENT_TYPE_MESSAGING,
        sub_type=sub_type,
        payload=copy.deepcopy(dict(item)),
        event_id=event_id,
        sender_id=_clean(_as_mapping(item.get("sender")).get("id")),
        sender_username=first_extracted(item, USERNAME_STRATEGIES),
        text=first_extracted(item, TEXT_STRATEGIES),
        story_id=_clean(story.get("id")),
        timestamp=_clean(item.get("timestamp")),
    )


def _normalize_change(platform: str, account_id: str, item: Mapping[str, Any]) -> InboundEvent:
    value = _as_mapping(item.get("value"))
    sub_type = _clean(item.get("field")) or "other"
    event_id = _clean(value.get("id")) or payload_hash(
        {"account_id": account_id, "event_type": EVENT_TYPE_CHANGES, "sub_type": sub_type, "payload": item}
    )
    media_id = _clean(_as_mapping(value.get("media")).get("id")) or _clean(value.get("media_id"))
    return InboundEvent(
        platform=platform,
        account_id=account_id,
        event_type=EVENT_TYPE_CHANGES,
        sub_type=sub_type,
        payload=copy.deepcopy(dict(item)),
        event_id=event_id,
        sender_id=_clean(_as_mapping(value.get("from")).get("id")),
        sender_username=first_extracted(item, USERNAME_STRATEGIES),
        text=first_extracted(item, TEXT_STRATEGIES),
        media_id=media_id,
        story_id=media_id if sub_type in STORY_CHANGE_FIELDS else None,
        timestamp=_clean(value.get("timestamp")) or _clean(item.get("time")),
    )


def normalize_entry(platform: str, entry: Mapping[str, Any]) -> List[InboundEvent]:
    """Split one batched webhook entry into canonical events."""
    account_id = _clean(entry.get("id"))
    if not account_id:
        logger.warning("Webhook entry without account id skipped")
        return []

    events: List[InboundEvent] = []
    for item in entry.get("messaging") or []:
        if not isinstance(item, Mapping):
            continue
        if _is_ignorable_messaging(item):
            logger.debug("Ignoring echo/receipt messaging item for account %s", account_id)
            continue
        events.append(_normalize_messaging(platform, account_id, item))
    for item in entry.get("changes") or []:
        if not isinstance(item, Mapping):
            continue
        events.append(_normalize_change(platform, account_id, item))
    return events


def normalize_delivery(body: Mapping[str, Any]) -> List[InboundEvent]:
    """Normalize a full `{object, entry: [...]}` webhook delivery."""
    platform = _clean(body.get("object")) or "instagram"
    events: List[InboundEvent] = []
    for entry in body.get("entry") or []:
        if isinstance(entry, Mapping):
            events.extend(normalize_entry(platform, entry))
    return events


def trigger_types_for_event(event: InboundEvent) -> Tuple[str, ...]:
    """
    Automation trigger types an event can fire.
    A DM that replies to a story is still a DM; it also fires story-reply automations.
    """
    if event.event_type == EVENT_TYPE_MESSAGING and event.sub_type == "message":
        if event.story_id:
            return ("user_directed_messages", "story_reply")
        return ("user_directed_messages",)
    if event.event_type == EVENT_TYPE_CHANGES:
        if event.sub_type == "comments":
            return ("post_comment",)
        if event.sub_type in STORY_CHANGE_FIELDS:
            return ("story_reply",)
    return ()
