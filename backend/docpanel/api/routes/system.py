"""Running version and the latest published release."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from docpanel.api.deps.auth import get_current_user
from docpanel.api.envelope import success_envelope
from docpanel.services.audit_service import Actor
from docpanel.services.version_service import version_service

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/version")
async def get_version(current_user: Actor = Depends(get_current_user)):
    info = await version_service.get_info()
    return success_envelope(info.to_dict())
