"""Audit log read side: paging, export and the administrative clear."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from docpanel.api.deps.auth import get_current_user
from docpanel.api.envelope import paged_envelope, success_envelope
from docpanel.core.config import get_settings
from docpanel.services.audit_service import Actor, audit_service

router = APIRouter(prefix="/audit-log", tags=["Audit Log"])
settings = get_settings()


def _export_filename(extension: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    return f"audit-log-{stamp}.{extension}"


@router.get("")
async def list_audit_logs(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=500),
    sort: Optional[str] = None,
    current_user: Actor = Depends(get_current_user),
):
    result = await audit_service.list_logs(page=page, per_page=per_page or settings.items_per_page, sort=sort)
    return paged_envelope(result)


@router.delete("/all")
async def clear_audit_logs(current_user: Actor = Depends(get_current_user)):
    deleted = await audit_service.clear_all(current_user)
    return success_envelope({"deleted": deleted})


@router.get("/export/csv")
async def export_audit_csv(current_user: Actor = Depends(get_current_user)):
    content, _count = await audit_service.export_csv(current_user)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{_export_filename("csv")}"'},
    )


@router.get("/export/json")
async def export_audit_json(current_user: Actor = Depends(get_current_user)):
    logs = await audit_service.export_json(current_user)
    return success_envelope(
        logs,
        meta={"count": len(logs), "filename": _export_filename("json")},
    )
