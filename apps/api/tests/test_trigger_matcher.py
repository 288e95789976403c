import pytest

from models.automation import Automation
from services.automation_types import DirectMessageTrigger, parse_trigger_config
from services.events import normalize_entry
from services.trigger_matcher import keyword_match, matches, matches_config


ACCOUNT = "17841400000000001"


def _automation(trigger_type, trigger_config):
    return Automation(
        id="auto-1",
        user_id="user-1",
        trigger_type=trigger_type,
        trigger_config=trigger_config,
        actions=[],
        status="active",
    )


def _dm(text="hello", reply_to=None):
    message = {"mid": "m1", "text": text}
    if reply_to:
        message["reply_to"] = reply_to
    return normalize_entry("instagram", {"id": ACCOUNT, "messaging": [{"sender": {"id": "9001"}, "message": message}]})[0]


def _comment(text="love this", media_id="media-1"):
    change = {"field": "comments", "value": {"id": "c1", "text": text, "from": {"id": "9001"}, "media": {"id": media_id}}}
    return normalize_entry("instagram", {"id": ACCOUNT, "changes": [change]})[0]


def _story_reply(story_id="story-1"):
    return _dm(text="nice story", reply_to={"story": {"id": story_id}})


def test_keyword_match_is_case_insensitive_substring():
    assert keyword_match(["PRICE"], "what's the price?")
    assert keyword_match(["info", "link"], "send me the LINK please")
    assert not keyword_match(["price"], "how much?")


def test_keyword_match_ignores_blank_keywords_and_empty_text():
    assert not keyword_match(["", "   "], "anything")
    assert not keyword_match(["price"], None)
    assert not keyword_match(["price"], "")


def test_comment_all_matches_any_comment():
    automation = _automation("post_comment", {"postsType": "all", "commentsType": "all"})

    assert matches(automation, _comment("random words"))


def test_comment_keywords_match_only_listed_words():
    automation = _automation("post_comment", {"postsType": "all", "commentsType": "keywords", "keywords": ["Price"]})

    assert matches(automation, _comment("Price please"))
    assert not matches(automation, _comment("love this"))


def test_comment_without_comments_type_never_matches():
    automation = _automation("post_comment", {"postsType": "all"})

    assert not matches(automation, _comment())


def test_direct_message_keywords():
    automation = _automation("user_directed_messages", {"messageType": "keywords", "keywords": ["demo"]})

    assert matches(automation, _dm("Can I get a DEMO?"))
    assert not matches(automation, _dm("hello"))


def test_trigger_type_must_match_event_shape():
    automation = _automation("post_comment", {"commentsType": "all"})

    assert not matches(automation, _dm("hello"))


def test_story_reply_all_matches():
    automation = _automation("story_reply", {"storiesType": "all"})

    assert matches(automation, _story_reply())


def test_story_reply_specific_does_not_match_by_default():
    automation = _automation("story_reply", {"storiesType": "specific", "specificStories": ["story-1"]})

    assert not matches(automation, _story_reply("story-1"), enforce_targets=False)


def test_story_reply_specific_with_enforcement_checks_story_ids():
    automation = _automation("story_reply", {"storiesType": "specific", "specificStories": ["story-1"]})

    assert matches(automation, _story_reply("story-1"), enforce_targets=True)
    assert not matches(automation, _story_reply("story-2"), enforce_targets=True)


def test_specific_posts_are_only_filtered_when_enforced():
    automation = _automation(
        "post_comment",
        {"postsType": "specific", "specificPosts": ["media-1"], "commentsType": "all"},
    )

    assert matches(automation, _comment(media_id="media-9"), enforce_targets=False)
    assert matches(automation, _comment(media_id="media-1"), enforce_targets=True)
    assert not matches(automation, _comment(media_id="media-9"), enforce_targets=True)


def test_enforcement_default_comes_from_settings(monkeypatch):
    from services import trigger_matcher

    automation = _automation("story_reply", {"storiesType": "specific", "specificStories": ["story-1"]})
    monkeypatch.setattr(trigger_matcher.settings, "ENFORCE_SPECIFIC_TARGETS", True)

    assert matches(automation, _story_reply("story-1"))


def test_unreadable_config_is_a_non_match():
    automation = _automation("user_directed_messages", {"messageType": "sometimes"})

    assert not matches(automation, _dm("hello"))


def test_snake_case_config_is_accepted():
    config = parse_trigger_config("user_directed_messages", {"message_type": "all"})

    assert isinstance(config, DirectMessageTrigger)
    assert matches_config(config, _dm("anything"))


def test_unknown_trigger_type_is_rejected():
    with pytest.raises(ValueError):
        parse_trigger_config("follow", {})


def test_unknown_config_variant_raises():
    with pytest.raises(TypeError):
        matches_config(object(), _dm("hello"))
