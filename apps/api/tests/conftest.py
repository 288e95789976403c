import uuid
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base
from main import app
from models.automation import Automation
from models.automation_route import AutomationRoute
from models.instagram_account import InstagramAccount
from models.user import User
from routers import rate_limit
from services.crypto import encrypt_access_token
from services.errors import MessagingApiError, WorkflowEngineError
from services.messaging_api import SendResult


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit.reset_local_counters()
    yield
    rate_limit.reset_local_counters()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'automation.db'}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield maker
    await engine.dispose()


class FakeMessagingClient:
    """Records sends; raises for the send indexes listed in `fail_on`."""

    def __init__(self, fail_on=(), profiles: Optional[Dict[str, Dict[str, Any]]] = None):
        self.sent: List[Dict[str, Any]] = []
        self.fail_on = set(fail_on)
        self.profiles = profiles or {}
        self.profile_lookups: List[str] = []

    async def send(self, access_token: str, recipient_id: str, message: Dict[str, Any]) -> SendResult:
        index = len(self.sent)
        self.sent.append({"access_token": access_token, "recipient_id": recipient_id, "message": message})
        if index in self.fail_on:
            raise MessagingApiError("Messaging API error: 500 - upstream failure", status_code=500)
        return SendResult(message_id=f"mid.out.{index}", recipient_id=recipient_id)

    async def fetch_profile(self, user_id: str, access_token: str) -> Optional[Dict[str, Any]]:
        self.profile_lookups.append(user_id)
        return self.profiles.get(user_id)


class FakeWorkflowEngine:
    """Records calls; raises WorkflowEngineError for refs or operations listed in `failing`."""

    def __init__(self, failing=()):
        self.calls: List[tuple] = []
        self.failing = set(failing)

    async def _call(self, operation: str, workflow_ref: str, payload: Optional[dict] = None) -> Dict[str, Any]:
        self.calls.append((operation, workflow_ref, payload))
        if workflow_ref in self.failing or operation in self.failing:
            raise WorkflowEngineError(f"Workflow engine responded with 503: {operation} unavailable", status_code=503)
        return {"id": workflow_ref}

    async def execute(self, workflow_ref, event_payload):
        return await self._call("execute", workflow_ref, event_payload)

    async def activate(self, workflow_ref):
        return await self._call("activate", workflow_ref)

    async def deactivate(self, workflow_ref):
        return await self._call("deactivate", workflow_ref)

    async def delete(self, workflow_ref):
        return await self._call("delete", workflow_ref)

    def operations(self, operation: str) -> List[str]:
        return [ref for op, ref, _ in self.calls if op == operation]


async def seed_automation(
    session_maker,
    *,
    user_id: str = "user-1",
    platform_account_id: str = "17841400000000001",
    trigger_type: str = "user_directed_messages",
    trigger_config: Optional[Dict[str, Any]] = None,
    actions: Optional[List[Dict[str, Any]]] = None,
    status: str = "active",
    with_route: bool = True,
    route_active: bool = True,
    workflow_ref: Optional[str] = None,
    sub_type: Optional[str] = "message",
    event_type: str = "messaging",
) -> Dict[str, str]:
    """Insert user, connected account, automation and (optionally) its route."""
    ref = workflow_ref or f"wf-{uuid.uuid4().hex[:8]}"
    async with session_maker() as db:
        user = await db.get(User, user_id)
        if user is None:
            db.add(User(id=user_id, email=f"{user_id}@example.com"))
        account_id = f"acct-{user_id}-{platform_account_id}"
        account = await db.get(InstagramAccount, account_id)
        if account is None:
            db.add(
                InstagramAccount(
                    id=account_id,
                    user_id=user_id,
                    instagram_user_id=platform_account_id,
                    username="brand_account",
                    access_token_encrypted=encrypt_access_token("ig-access-token"),
                )
            )
        automation = Automation(
            id=str(uuid.uuid4()),
            user_id=user_id,
            instagram_account_id=account_id,
            name="Test automation",
            trigger_type=trigger_type,
            trigger_config=trigger_config if trigger_config is not None else {"messageType": "all"},
            actions=actions if actions is not None else [{"type": "send_dm", "messageTemplate": "Hi {{username}}!"}],
            status=status,
            workflow_ref=ref,
        )
        db.add(automation)
        if with_route:
            db.add(
                AutomationRoute(
                    id=str(uuid.uuid4()),
                    account_id=platform_account_id,
                    user_id=user_id,
                    automation_id=automation.id,
                    event_type=event_type,
                    sub_type=sub_type,
                    workflow_ref=ref,
                    is_active=route_active,
                )
            )
        await db.commit()
        return {
            "user_id": user_id,
            "account_id": account_id,
            "platform_account_id": platform_account_id,
            "automation_id": automation.id,
            "workflow_ref": ref,
        }


@pytest.fixture
def seed():
    return seed_automation


@pytest.fixture
def make_messaging():
    return FakeMessagingClient


@pytest.fixture
def make_engine():
    return FakeWorkflowEngine
