"""Dashboard session tokens (HS256, auth-provider style claims)."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from config import settings


USER_ROLE = "authenticated"
SERVICE_ROLE = "service_role"
ALLOWED_ROLES = (USER_ROLE, SERVICE_ROLE)


@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    role: str
    email: Optional[str]
    expires_at: int


def issue_session_token(
    user_id: str,
    email: Optional[str] = None,
    role: str = USER_ROLE,
    expires_hours: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Sign a token the way the dashboard's auth provider does.
    The API only verifies these; issuing lives here for the dashboard backend and tests.
    """
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(hours=max(int(expires_hours or settings.JWT_EXPIRATION_HOURS), 1))
    claims: Dict[str, Any] = {
        "sub": user_id,
        "aud": settings.JWT_AUDIENCE,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if email:
        claims["email"] = email
    return {
        "token": jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
        "expires_at": int(expires_at.timestamp()),
    }


def verify_session_token(token: str) -> SessionClaims:
    """Verify signature, audience and expiry. Raises ValueError with a client-safe message."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError as exc:
        raise ValueError("Invalid or expired session token.") from exc

    role = str(payload.get("role") or "").strip()
    if role not in ALLOWED_ROLES:
        raise ValueError("Session token role is not allowed.")
    subject = str(payload.get("sub") or "").strip()
    if not subject:
        raise ValueError("Session token missing subject.")
    return SessionClaims(
        user_id=subject,
        role=role,
        email=str(payload.get("email") or "").strip() or None,
        expires_at=int(payload.get("exp") or 0),
    )
