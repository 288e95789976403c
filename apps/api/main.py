"""
Inbound Automation API - FastAPI Backend
Webhook intake, automation lifecycle management and activity timelines.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import activity, automations, health, webhook
from services.event_tasks import EventTaskRunner
from services.webhook_pipeline import build_webhook_pipeline
from services.workflow_engine import build_workflow_engine_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Inbound Automation API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")

    runner = EventTaskRunner(grace_seconds=settings.WEBHOOK_SHUTDOWN_GRACE_SECONDS)
    runner.start()
    app.state.event_task_runner = runner
    app.state.webhook_pipeline = build_webhook_pipeline()
    app.state.workflow_engine = build_workflow_engine_client()
    print(
        f"⚙️ Automation execution mode: {settings.AUTOMATION_EXECUTION_MODE} "
        f"(backend={settings.WEBHOOK_PROCESSING_BACKEND})"
    )
    if settings.AUTOMATION_EXECUTION_MODE == "engine" and app.state.workflow_engine is None:
        print("⚠️ Engine mode enabled without WORKFLOW_ENGINE_BASE_URL; dispatches will be dead-lettered.")
    yield
    # Shutdown
    await runner.stop()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Inbound Automation API",
    description="Route platform webhook events to user automations and record their activity",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(webhook.router, prefix="/webhooks", tags=["Webhooks"])
app.include_router(automations.router, prefix="/automations", tags=["Automations"])
app.include_router(activity.router, prefix="/activity", tags=["Activity"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Inbound Automation API",
        "version": "0.1.0",
        "status": "running"
    }
