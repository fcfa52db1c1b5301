"""Admin authentication dependency."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from docpanel.core.security import decode_access_token
from docpanel.services.audit_service import Actor, client_ip

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def _actor_from_token(token: str, request: Request) -> Actor | None:
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        return None
    return Actor(user_id=str(payload["sub"]), ip=client_ip(request))


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    actor = _actor_from_token(credentials.credentials, request)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired authentication token",
        )
    return actor


async def get_request_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
) -> Actor:
    """Public routes: an admin token is optional and only marks the visitor as admin."""
    if credentials is not None:
        actor = _actor_from_token(credentials.credentials, request)
        if actor is not None:
            return actor
    return Actor(user_id=None, ip=client_ip(request))
