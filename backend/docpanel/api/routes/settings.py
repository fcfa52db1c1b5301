"""
DocPanel - App Settings Routes
==============================
Feature flags stored in the single app_settings record.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from docpanel.api.deps.auth import get_current_user
from docpanel.api.envelope import success_envelope
from docpanel.core.errors import DocPanelError
from docpanel.models import Collection
from docpanel.schemas import AppSettingsUpdate
from docpanel.services.app_settings_service import app_settings_service
from docpanel.services.audit_service import Actor, audit_service

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("")
async def get_app_settings(current_user: Actor = Depends(get_current_user)):
    return success_envelope(await app_settings_service.get_flags())


@router.put("")
async def update_app_settings(payload: AppSettingsUpdate, current_user: Actor = Depends(get_current_user)):
    try:
        saved = await app_settings_service.update_flags(payload.model_dump(exclude_none=True))
    except DocPanelError as exc:
        audit_service.emit(
            current_user,
            "SETTINGS_UPDATE_FAILURE",
            target_collection=Collection.APP_SETTINGS.value,
            target_record=app_settings_service.record_id,
            details={"error": str(exc)},
        )
        raise
    audit_service.emit(
        current_user,
        "SETTINGS_UPDATE",
        target_collection=Collection.APP_SETTINGS.value,
        target_record=app_settings_service.record_id,
        details=saved,
    )
    return success_envelope(saved)
