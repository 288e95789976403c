"""Error types raised by the webhook routing and automation engine."""

from __future__ import annotations

from typing import Optional


class SignatureInvalid(ValueError):
    """Raised when a webhook delivery or subscription handshake fails verification."""


class WorkflowEngineError(RuntimeError):
    """Raised when the external workflow engine rejects a call or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MessagingApiError(RuntimeError):
    """Raised when the messaging platform rejects a send or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
