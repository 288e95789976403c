import random
import uuid

import pytest
from sqlalchemy import select

from models.activity_log import ActivityLogEntry
from models.automation import Automation
from services.action_executor import (
    FOLLOW_POSTBACK_PAYLOAD,
    build_outbound_message,
    compose_action_message,
    execute_actions,
    render_message,
)
from services.activity import record_activity
from services.automation_types import ActionButton, parse_action
from services.events import normalize_entry


ACCOUNT = "17841400000000001"


def _event(username="alice", sender="9001"):
    sender_block = {"id": sender}
    if username:
        sender_block["username"] = username
    item = {"sender": sender_block, "message": {"mid": f"m-{uuid.uuid4().hex[:6]}", "text": "price?"}}
    return normalize_entry("instagram", {"id": ACCOUNT, "messaging": [item]})[0]


async def _load_automation(session_maker, automation_id) -> Automation:
    async with session_maker() as db:
        return await db.get(Automation, automation_id)


async def _activities(session_maker, automation_id):
    async with session_maker() as db:
        result = await db.execute(
            select(ActivityLogEntry)
            .where(ActivityLogEntry.automation_id == automation_id)
            .order_by(ActivityLogEntry.created_at.asc())
        )
        return list(result.scalars().all())


def test_render_message_substitutes_every_placeholder():
    text = render_message(["Hi {{username}}, thanks {{username}}!"], "alice")

    assert text == "Hi alice, thanks alice!"


def test_render_message_picks_one_template_with_injected_rng():
    templates = ["one {{username}}", "two {{username}}", "three {{username}}"]
    expected = random.Random(7).choice(templates).replace("{{username}}", "bob")

    assert render_message(templates, "bob", random.Random(7)) == expected


def test_reply_templates_are_chosen_from_the_configured_set_only():
    action = parse_action({"type": "reply_to_comment", "replyTemplates": ["Thanks!", "Appreciate it!"]})

    rendered = {compose_action_message(action, "alice", rng=random.Random(seed))[0] for seed in range(1000)}

    assert rendered == {"Thanks!", "Appreciate it!"}


def test_render_message_without_username_uses_fallback():
    assert render_message(["Hey {{username}}"], None) == "Hey there"


def test_plain_text_without_buttons():
    assert build_outbound_message("hello") == {"text": "hello"}


def test_buttons_render_a_button_template_capped_at_three():
    buttons = [
        ActionButton(text="Site", url="https://example.com"),
        ActionButton(text="Yes", payload="YES"),
        ActionButton(text="No"),
        ActionButton(text="Extra"),
    ]
    message = build_outbound_message("Pick one", buttons)
    payload = message["attachment"]["payload"]

    assert payload["template_type"] == "button"
    assert payload["text"] == "Pick one"
    assert payload["buttons"] == [
        {"type": "web_url", "url": "https://example.com", "title": "Site"},
        {"type": "postback", "title": "Yes", "payload": "YES"},
        {"type": "postback", "title": "No", "payload": "NO"},
    ]


def test_titled_message_renders_generic_card():
    message = build_outbound_message("Body", [ActionButton(text="Go", url="https://example.com")], title="Offer")
    element = message["attachment"]["payload"]["elements"][0]

    assert message["attachment"]["payload"]["template_type"] == "generic"
    assert element["title"] == "Offer"
    assert element["subtitle"] == "Body"


def test_calendar_button_uses_booking_url():
    button = ActionButton(text="Book", kind="calendar")

    message = build_outbound_message("Book a slot", [button], calendar_url="https://cal.example.com/me")
    assert message["attachment"]["payload"]["buttons"][0] == {
        "type": "web_url",
        "url": "https://cal.example.com/me",
        "title": "Book",
    }
    with pytest.raises(ValueError):
        build_outbound_message("Book a slot", [button], calendar_url="")


def test_ask_to_follow_renders_follow_postback():
    action = parse_action({"type": "ask_to_follow", "messageTemplate": "Follow us {{username}}", "followButtonText": "Follow now"})
    text, message = compose_action_message(action, "alice")

    assert text == "Follow us alice"
    button = message["attachment"]["payload"]["buttons"][0]
    assert button == {"type": "postback", "title": "Follow now", "payload": FOLLOW_POSTBACK_PAYLOAD}


def test_send_dm_with_too_many_buttons_is_invalid():
    with pytest.raises(ValueError):
        parse_action(
            {
                "type": "send_dm",
                "messageTemplate": "hi",
                "actionButtons": [{"text": str(index)} for index in range(4)],
            }
        )


@pytest.mark.asyncio
async def test_actions_run_in_order_and_failures_are_isolated(session_maker, seed, make_messaging):
    seeded = await seed(
        session_maker,
        actions=[
            {"type": "send_dm", "messageTemplate": "first {{username}}"},
            {"type": "send_dm", "messageTemplate": "second"},
            {"type": "ask_to_follow", "messageTemplate": "third"},
        ],
    )
    automation = await _load_automation(session_maker, seeded["automation_id"])
    messaging = make_messaging(fail_on={1})

    async with session_maker() as db:
        outcomes = await execute_actions(
            automation,
            _event(),
            db=db,
            messaging=messaging,
            access_token="ig-access-token",
            monthly_dm_limit=0,
        )

    assert [outcome.status for outcome in outcomes] == ["success", "failed", "success"]
    assert [sent["message"].get("text") for sent in messaging.sent[:2]] == ["first alice", "second"]
    assert all(sent["recipient_id"] == "9001" for sent in messaging.sent)

    activities = await _activities(session_maker, seeded["automation_id"])
    assert len(activities) == 3
    by_index = {entry.metadata_json["action_index"]: entry for entry in activities}
    assert by_index[0].status == "success"
    assert by_index[0].metadata_json["message_id"] == "mid.out.0"
    assert by_index[0].metadata_json["recipient_id"] == "9001"
    assert by_index[1].status == "failed"
    assert "500" in by_index[1].metadata_json["error"]
    assert by_index[2].status == "success"
    assert {entry.target_username for entry in activities} == {"alice"}


@pytest.mark.asyncio
async def test_invalid_action_is_recorded_failed_and_siblings_continue(session_maker, seed, make_messaging):
    seeded = await seed(
        session_maker,
        actions=[
            {"type": "send_dm", "messageTemplate": ""},
            {"type": "launch_rocket"},
            {"type": "send_dm", "messageTemplate": "still sent"},
        ],
    )
    automation = await _load_automation(session_maker, seeded["automation_id"])
    messaging = make_messaging()

    async with session_maker() as db:
        outcomes = await execute_actions(
            automation, _event(), db=db, messaging=messaging, access_token="t", monthly_dm_limit=0
        )

    assert [outcome.status for outcome in outcomes] == ["failed", "failed", "success"]
    assert outcomes[1].action_type == "launch_rocket"
    assert len(messaging.sent) == 1
    assert len(await _activities(session_maker, seeded["automation_id"])) == 3


@pytest.mark.asyncio
async def test_monthly_dm_ceiling_records_skipped(session_maker, seed, make_messaging):
    seeded = await seed(
        session_maker,
        actions=[
            {"type": "send_dm", "messageTemplate": "over the limit"},
            {"type": "ask_to_follow", "messageTemplate": "follow"},
        ],
    )
    async with session_maker() as db:
        await record_activity(
            db,
            activity_type="send_dm",
            target_username="earlier",
            status="success",
            user_id=seeded["user_id"],
        )
    automation = await _load_automation(session_maker, seeded["automation_id"])
    messaging = make_messaging()

    async with session_maker() as db:
        outcomes = await execute_actions(
            automation, _event(), db=db, messaging=messaging, access_token="t", monthly_dm_limit=1
        )

    assert [outcome.status for outcome in outcomes] == ["skipped", "success"]
    assert len(messaging.sent) == 1
    statuses = sorted(entry.status for entry in await _activities(session_maker, seeded["automation_id"]))
    assert statuses == ["skipped", "success"]
    skipped = [entry for entry in await _activities(session_maker, seeded["automation_id"]) if entry.status == "skipped"]
    assert [entry.activity_type for entry in skipped] == ["send_dm_skipped"]


@pytest.mark.asyncio
async def test_missing_username_falls_back_to_sender_id_for_target(session_maker, seed, make_messaging):
    seeded = await seed(session_maker, actions=[{"type": "send_dm", "messageTemplate": "Hi {{username}}"}])
    automation = await _load_automation(session_maker, seeded["automation_id"])
    messaging = make_messaging()

    async with session_maker() as db:
        await execute_actions(
            automation, _event(username=None), db=db, messaging=messaging, access_token="t", monthly_dm_limit=0
        )

    assert messaging.sent[0]["message"] == {"text": "Hi there"}
    [entry] = await _activities(session_maker, seeded["automation_id"])
    assert entry.target_username == "9001"


@pytest.mark.asyncio
async def test_failed_dm_attempts_count_toward_monthly_ceiling(session_maker, seed, make_messaging):
    seeded = await seed(session_maker, actions=[{"type": "send_dm", "messageTemplate": "hello again"}])
    async with session_maker() as db:
        await record_activity(
            db,
            activity_type="send_dm",
            target_username="earlier",
            status="failed",
            user_id=seeded["user_id"],
        )
        await record_activity(
            db,
            activity_type="send_dm_skipped",
            target_username="earlier",
            status="skipped",
            user_id=seeded["user_id"],
        )
    automation = await _load_automation(session_maker, seeded["automation_id"])
    messaging = make_messaging()

    async with session_maker() as db:
        outcomes = await execute_actions(
            automation, _event(), db=db, messaging=messaging, access_token="t", monthly_dm_limit=1
        )

    assert [outcome.status for outcome in outcomes] == ["skipped"]
    assert messaging.sent == []
