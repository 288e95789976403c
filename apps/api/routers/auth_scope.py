"""Bearer session dependencies for the management endpoints."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.session_token import SERVICE_ROLE, verify_session_token


bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: str
    email: Optional[str] = None

    @property
    def is_service(self) -> bool:
        return self.role == SERVICE_ROLE


def resolve_user_scope(auth: AuthContext, requested_user_id: Optional[str]) -> str:
    """
    Pick the user a management call acts for.
    - Dashboard sessions act for themselves; naming someone else is a 403.
    - Service sessions act on behalf of the user they name, and must name one.
    """
    requested = (requested_user_id or "").strip() or None
    if auth.is_service:
        if requested is None:
            raise HTTPException(status_code=400, detail="user_id is required for service sessions.")
        return requested
    if requested and requested != auth.user_id:
        raise HTTPException(status_code=403, detail="user_id does not match authenticated session.")
    return auth.user_id


async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthContext:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Bearer session token.")
    try:
        claims = verify_session_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return AuthContext(user_id=claims.user_id, role=claims.role, email=claims.email)
