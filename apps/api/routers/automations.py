"""Automation management router: create, activate, deactivate, delete."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.automation import Automation
from routers.auth_scope import AuthContext, get_auth_context, resolve_user_scope
from routers.rate_limit import rate_limit
from services.automation_types import TriggerType
from services.route_lifecycle import (
    WorkflowLifecycle,
    activate_route,
    create_automation,
    deactivate_route,
    delete_automation,
)
from services.workflow_engine import build_workflow_engine_client

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateAutomationRequest(BaseModel):
    user_id: Optional[str] = None
    name: str = Field(default="Untitled automation", max_length=200)
    trigger_type: TriggerType
    trigger_config: Dict[str, Any] = Field(default_factory=dict)
    actions: List[Dict[str, Any]] = Field(min_length=1)
    instagram_account_id: Optional[str] = None
    workflow_ref: Optional[str] = None


class WorkflowRefRequest(BaseModel):
    user_id: Optional[str] = None
    workflow_ref: str = Field(min_length=1, validation_alias=AliasChoices("workflow_ref", "workflowId"))


def get_workflow_engine(request: Request) -> Optional[WorkflowLifecycle]:
    engine = getattr(request.app.state, "workflow_engine", None)
    if engine is None:
        engine = build_workflow_engine_client()
    return engine


def serialize_automation(automation: Automation) -> Dict[str, Any]:
    return {
        "id": automation.id,
        "name": automation.name,
        "trigger_type": automation.trigger_type,
        "trigger_config": automation.trigger_config or {},
        "actions": automation.actions or [],
        "status": automation.status,
        "workflow_ref": automation.workflow_ref,
        "instagram_account_id": automation.instagram_account_id,
        "created_at": automation.created_at.isoformat() if automation.created_at else None,
    }


@router.get("")
async def list_automations(
    user_id: Optional[str] = Query(default=None),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    scoped_user_id = resolve_user_scope(auth, user_id)
    result = await db.execute(
        select(Automation).where(Automation.user_id == scoped_user_id).order_by(Automation.created_at.desc())
    )
    return {"automations": [serialize_automation(row) for row in result.scalars().all()]}


@router.post("")
async def create_automation_endpoint(
    request: CreateAutomationRequest,
    _rate_limit: None = Depends(rate_limit("automation_create", limit=60, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Create an automation in the inactive state."""
    scoped_user_id = resolve_user_scope(auth, request.user_id)
    automation = await create_automation(
        db,
        scoped_user_id,
        name=request.name,
        trigger_type=request.trigger_type,
        trigger_config=request.trigger_config,
        actions=request.actions,
        instagram_account_id=request.instagram_account_id,
        workflow_ref=request.workflow_ref,
    )
    return {"success": True, "automation": serialize_automation(automation)}


@router.post("/activate")
async def activate_automation(
    request: WorkflowRefRequest,
    _rate_limit: None = Depends(rate_limit("automation_activate", limit=120, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    engine: Optional[WorkflowLifecycle] = Depends(get_workflow_engine),
):
    scoped_user_id = resolve_user_scope(auth, request.user_id)
    route = await activate_route(db, scoped_user_id, request.workflow_ref, engine)
    return {
        "success": True,
        "active": True,
        "workflow_ref": request.workflow_ref,
        "route": {
            "id": route.id,
            "account_id": route.account_id,
            "event_type": route.event_type,
            "sub_type": route.sub_type,
        },
    }


@router.post("/deactivate")
async def deactivate_automation(
    request: WorkflowRefRequest,
    _rate_limit: None = Depends(rate_limit("automation_deactivate", limit=120, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    engine: Optional[WorkflowLifecycle] = Depends(get_workflow_engine),
):
    scoped_user_id = resolve_user_scope(auth, request.user_id)
    routes_updated = await deactivate_route(db, scoped_user_id, request.workflow_ref, engine)
    return {
        "success": True,
        "active": False,
        "workflow_ref": request.workflow_ref,
        "routes_updated": routes_updated,
    }


@router.delete("/{workflow_ref}")
async def delete_automation_endpoint(
    workflow_ref: str,
    user_id: Optional[str] = Query(default=None),
    _rate_limit: None = Depends(rate_limit("automation_delete", limit=60, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    engine: Optional[WorkflowLifecycle] = Depends(get_workflow_engine),
):
    scoped_user_id = resolve_user_scope(auth, user_id)
    automation_id = await delete_automation(db, scoped_user_id, workflow_ref, engine)
    return {"success": True, "deleted": automation_id, "workflow_ref": workflow_ref}
