"""Trigger config and action contracts for automations.

Automations are stored as JSON. These models parse that JSON into explicit
variants so matching and execution can dispatch on type instead of probing
object shapes. Stored camelCase keys are accepted alongside snake_case.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, model_validator


TriggerType = Literal["post_comment", "story_reply", "user_directed_messages"]
TRIGGER_TYPES = ("post_comment", "story_reply", "user_directed_messages")

ButtonKind = Literal["web_url", "postback", "calendar"]
MAX_BUTTONS = 3


class _StoredModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Trigger configs (one variant per trigger_type)
# ---------------------------------------------------------------------------


class PostCommentTrigger(_StoredModel):
    kind: Literal["post_comment"] = "post_comment"
    posts_type: Literal["all", "specific"] = Field(
        default="all", validation_alias=AliasChoices("postsType", "posts_type")
    )
    specific_posts: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("specificPosts", "specific_posts")
    )
    comments_type: Optional[Literal["all", "keywords"]] = Field(
        default=None, validation_alias=AliasChoices("commentsType", "comments_type")
    )
    keywords: List[str] = Field(default_factory=list)


class StoryReplyTrigger(_StoredModel):
    kind: Literal["story_reply"] = "story_reply"
    stories_type: Optional[Literal["all", "specific"]] = Field(
        default=None, validation_alias=AliasChoices("storiesType", "stories_type")
    )
    specific_stories: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("specificStories", "specific_stories")
    )


class DirectMessageTrigger(_StoredModel):
    kind: Literal["user_directed_messages"] = "user_directed_messages"
    message_type: Optional[Literal["all", "keywords"]] = Field(
        default=None, validation_alias=AliasChoices("messageType", "message_type")
    )
    keywords: List[str] = Field(default_factory=list)


TriggerConfig = Union[PostCommentTrigger, StoryReplyTrigger, DirectMessageTrigger]

_TRIGGER_MODELS = {
    "post_comment": PostCommentTrigger,
    "story_reply": StoryReplyTrigger,
    "user_directed_messages": DirectMessageTrigger,
}


def parse_trigger_config(trigger_type: str, raw: Optional[Mapping[str, Any]]) -> TriggerConfig:
    """Parse stored trigger config JSON into the variant for `trigger_type`."""
    model = _TRIGGER_MODELS.get(trigger_type)
    if model is None:
        raise ValueError(f"Unknown trigger type: {trigger_type}")
    data = dict(raw or {})
    data.pop("kind", None)
    return model.model_validate(data)


# ---------------------------------------------------------------------------
# Actions (discriminated on `type`)
# ---------------------------------------------------------------------------


class ActionButton(_StoredModel):
    id: Optional[str] = None
    text: str = Field(min_length=1)
    kind: Optional[ButtonKind] = Field(default=None, validation_alias=AliasChoices("kind", "type"))
    url: Optional[str] = None
    payload: Optional[str] = None

    @property
    def resolved_kind(self) -> ButtonKind:
        if self.kind:
            return self.kind
        return "web_url" if self.url else "postback"


class ReplyToCommentAction(_StoredModel):
    type: Literal["reply_to_comment"] = "reply_to_comment"
    templates: List[str] = Field(
        min_length=1, validation_alias=AliasChoices("replyTemplates", "templates")
    )
    buttons: List[ActionButton] = Field(
        default_factory=list, validation_alias=AliasChoices("actionButtons", "buttons")
    )


class SendDmAction(_StoredModel):
    type: Literal["send_dm"] = "send_dm"
    title: Optional[str] = None
    templates: List[str] = Field(default_factory=list)
    message: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("messageTemplate", "message")
    )
    buttons: List[ActionButton] = Field(
        default_factory=list,
        max_length=MAX_BUTTONS,
        validation_alias=AliasChoices("actionButtons", "buttons"),
    )

    @model_validator(mode="after")
    def _require_text(self) -> "SendDmAction":
        if not self.templates and not (self.message or "").strip():
            raise ValueError("send_dm requires a message or at least one template")
        return self


class AskToFollowAction(_StoredModel):
    type: Literal["ask_to_follow"] = "ask_to_follow"
    message: str = Field(min_length=1, validation_alias=AliasChoices("messageTemplate", "message"))
    follow_button_text: str = Field(
        default="Follow", validation_alias=AliasChoices("followButtonText", "follow_button_text")
    )


Action = Annotated[
    Union[ReplyToCommentAction, SendDmAction, AskToFollowAction],
    Field(discriminator="type"),
]

_ACTION_ADAPTER: TypeAdapter = TypeAdapter(Action)


def parse_action(raw: Mapping[str, Any]) -> Union[ReplyToCommentAction, SendDmAction, AskToFollowAction]:
    return _ACTION_ADAPTER.validate_python(dict(raw))


def dump_action(action: Union[ReplyToCommentAction, SendDmAction, AskToFollowAction]) -> Dict[str, Any]:
    return action.model_dump(mode="json", exclude_none=True)
