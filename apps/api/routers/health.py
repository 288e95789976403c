"""
Health check endpoints.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis.asyncio as redis

from config import settings
from database import engine

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.
    Reports datastore, Redis and collaborator configuration.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "database": "unknown",
        "redis": "unknown",
        "execution_mode": settings.AUTOMATION_EXECUTION_MODE,
        "processing_backend": settings.WEBHOOK_PROCESSING_BACKEND,
        "workflow_engine": "configured" if settings.WORKFLOW_ENGINE_BASE_URL else "missing",
    }
    runner = getattr(request.app.state, "event_task_runner", None)
    health_status["webhook_tasks"] = {
        "running": bool(runner and runner.running),
        "pending": runner.pending if runner else 0,
    }

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["database"] = "up"
    except Exception as e:
        health_status["database"] = f"down: {str(e)}"
        health_status["status"] = "degraded"

    try:
        r = redis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        health_status["redis"] = "up"
    except Exception as e:
        health_status["redis"] = f"down: {str(e)}"
        if settings.WEBHOOK_PROCESSING_BACKEND == "rq":
            health_status["status"] = "degraded"

    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    missing = []
    if not settings.META_APP_SECRET:
        missing.append("META_APP_SECRET")
    if not settings.META_VERIFY_TOKEN:
        missing.append("META_VERIFY_TOKEN")
    if settings.AUTOMATION_EXECUTION_MODE == "engine" and not settings.WORKFLOW_ENGINE_BASE_URL:
        missing.append("WORKFLOW_ENGINE_BASE_URL")

    if missing:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": missing},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
