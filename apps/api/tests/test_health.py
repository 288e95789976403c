from unittest.mock import patch

import pytest
from httpx import AsyncClient, ASGITransport

from main import app


@pytest.mark.asyncio
async def test_liveness_probe():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health/live")

    assert response.status_code == 200
    assert response.json() == {"alive": True}


@pytest.mark.asyncio
async def test_readiness_reports_missing_webhook_secrets():
    with patch("routers.health.settings.META_APP_SECRET", ""), patch(
        "routers.health.settings.META_VERIFY_TOKEN", "verify"
    ), patch("routers.health.settings.AUTOMATION_EXECUTION_MODE", "engine"), patch(
        "routers.health.settings.WORKFLOW_ENGINE_BASE_URL", ""
    ):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health/ready")

    assert response.status_code == 503
    assert response.json()["missing"] == ["META_APP_SECRET", "WORKFLOW_ENGINE_BASE_URL"]


@pytest.mark.asyncio
async def test_readiness_when_configured():
    with patch("routers.health.settings.META_APP_SECRET", "secret"), patch(
        "routers.health.settings.META_VERIFY_TOKEN", "verify"
    ), patch("routers.health.settings.AUTOMATION_EXECUTION_MODE", "direct"):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {"ready": True}
