"""Client for the external (n8n-compatible) workflow engine."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from config import settings
from services.errors import WorkflowEngineError


class WorkflowEngineClient:
    """
    Minimal wrapper for the workflow engine REST API.
    - execute/activate/deactivate/delete by workflow id.
    - Any non-2xx response or transport failure raises WorkflowEngineError.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-N8N-API-KEY"] = self._api_key
        return headers

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self._base}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=self._headers(), json=json)
        except httpx.HTTPError as exc:
            raise WorkflowEngineError(f"Workflow engine unreachable: {exc}") from exc
        if response.status_code >= 400:
            raise WorkflowEngineError(
                f"Workflow engine responded with {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"data": body}

    async def execute(self, workflow_ref: str, event_payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", f"/api/v1/workflows/{workflow_ref}/execute", json=event_payload)

    async def activate(self, workflow_ref: str) -> Dict[str, Any]:
        return await self._request("POST", f"/api/v1/workflows/{workflow_ref}/activate")

    async def deactivate(self, workflow_ref: str) -> Dict[str, Any]:
        return await self._request("POST", f"/api/v1/workflows/{workflow_ref}/deactivate")

    async def delete(self, workflow_ref: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/api/v1/workflows/{workflow_ref}")


def build_workflow_engine_client() -> Optional[WorkflowEngineClient]:
    """Return a configured client, or None when no engine is configured."""
    base_url = (settings.WORKFLOW_ENGINE_BASE_URL or "").strip()
    if not base_url:
        return None
    return WorkflowEngineClient(
        base_url=base_url,
        api_key=(settings.WORKFLOW_ENGINE_API_KEY or "").strip(),
        timeout=float(settings.WORKFLOW_ENGINE_TIMEOUT_SECONDS),
    )
