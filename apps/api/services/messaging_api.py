"""Instagram messaging (Graph-style) API client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from config import settings
from services.errors import MessagingApiError


@dataclass(frozen=True)
class SendResult:
    message_id: Optional[str]
    recipient_id: Optional[str]


class InstagramMessagingClient:
    """
    Minimal client for the Instagram Platform messaging endpoints.
    - Access tokens are passed per call and never logged.
    """

    def __init__(
        self,
        *,
        base_url: str = "https://graph.instagram.com/v21.0",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def send(self, access_token: str, recipient_id: str, message: Dict[str, Any]) -> SendResult:
        """
        POST /me/messages
        message example (text):
        {"text": "hello"}
        """
        url = f"{self._base}/me/messages"
        body = {"recipient": {"id": recipient_id}, "message": message}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, params={"access_token": access_token}, json=body)
        except httpx.HTTPError as exc:
            raise MessagingApiError(f"Messaging API unreachable: {exc}") from exc
        if response.status_code >= 400:
            raise MessagingApiError(
                f"Messaging API error: {response.status_code} - {response.text[:500]}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        return SendResult(
            message_id=payload.get("message_id"),
            recipient_id=payload.get("recipient_id") or recipient_id,
        )

    async def fetch_profile(self, user_id: str, access_token: str) -> Optional[Dict[str, Any]]:
        """Look up username/name for a sender id. Returns None when unavailable."""
        url = f"{self._base}/{user_id}"
        params = {"fields": "username,name,profile_picture_url", "access_token": access_token}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise MessagingApiError(f"Profile lookup unreachable: {exc}") from exc
        if response.status_code >= 400:
            return None
        try:
            payload = response.json()
        except ValueError:
            return None
        return payload if isinstance(payload, dict) else None


def build_messaging_client() -> InstagramMessagingClient:
    return InstagramMessagingClient(
        base_url=settings.GRAPH_API_BASE_URL,
        timeout=float(settings.GRAPH_API_TIMEOUT_SECONDS),
    )
