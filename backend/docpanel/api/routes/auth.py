"""
DocPanel - Authentication Routes
================================
Admin login against the record store's users collection.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from docpanel.api.deps.auth import get_current_user
from docpanel.api.envelope import success_envelope
from docpanel.core.errors import RecordStoreError, from_store_error
from docpanel.core.logging import get_logger
from docpanel.core.security import create_access_token
from docpanel.repositories.record_store import record_store
from docpanel.schemas import LoginRequest, TokenResponse
from docpanel.services.audit_service import Actor, audit_service, client_ip

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = get_logger("api.auth")


@router.post("/login")
async def login(payload: LoginRequest, request: Request):
    ip = client_ip(request)
    email = payload.email.strip().lower()
    try:
        user = await record_store.authenticate_user(email, payload.password)
    except RecordStoreError as exc:
        if exc.status in (400, 401, 403, 404):
            logger.warning("login_failed", email=email, status=exc.status)
            audit_service.emit(Actor(ip=ip), "USER_LOGIN_FAILURE", details={"email": email, "reason": exc.message})
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
            ) from exc
        raise from_store_error(exc, operation="user_login") from exc

    user_id = user.get("id")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    token = create_access_token({"sub": user_id, "email": user.get("email")})
    logger.info("login_success", user_id=user_id)
    audit_service.emit(Actor(user_id=user_id, ip=ip), "USER_LOGIN", target_collection="users", target_record=user_id)
    return success_envelope(TokenResponse(access_token=token, user_id=user_id).model_dump())


@router.get("/me")
async def me(current_user: Actor = Depends(get_current_user)):
    return success_envelope({"user_id": current_user.user_id})
