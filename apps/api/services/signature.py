"""Webhook authenticity checks (X-Hub-Signature-256 and subscription handshake)."""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from services.errors import SignatureInvalid


SIGNATURE_PREFIX = "sha256="


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Return the `sha256=<hex>` header value for a raw body."""
    digest = hmac.new(secret.encode("utf-8"), msg=raw_body, digestmod=hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(raw_body: bytes, signature_header: Optional[str], secret: str) -> None:
    """
    Verify an HMAC-SHA256 signature over the exact raw request bytes.

    Args:
        raw_body: Body bytes exactly as received, never a re-serialized form
        signature_header: Value of the X-Hub-Signature-256 header
        secret: Shared app secret

    Raises:
        SignatureInvalid: header missing, malformed, or digest mismatch
    """
    if not secret:
        raise SignatureInvalid("Webhook secret is not configured.")
    header = (signature_header or "").strip()
    if not header:
        raise SignatureInvalid("Missing signature header.")

    method, sep, provided = header.partition("=")
    if not sep or method.lower() != "sha256" or not provided:
        raise SignatureInvalid("Malformed signature header.")
    provided = provided.strip().lower()
    try:
        bytes.fromhex(provided)
    except ValueError as exc:
        raise SignatureInvalid("Malformed signature header.") from exc

    expected = hmac.new(secret.encode("utf-8"), msg=raw_body, digestmod=hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, provided):
        raise SignatureInvalid("Signature mismatch.")


def verify_subscription(
    mode: Optional[str],
    verify_token: Optional[str],
    challenge: Optional[str],
    expected_token: str,
) -> str:
    """Return the challenge to echo when the subscription handshake is valid."""
    if not expected_token:
        raise SignatureInvalid("Verify token is not configured.")
    if mode != "subscribe" or not verify_token:
        raise SignatureInvalid("Invalid subscription mode.")
    if not hmac.compare_digest(verify_token.encode("utf-8"), expected_token.encode("utf-8")):
        raise SignatureInvalid("Verify token mismatch.")
    return challenge or ""
