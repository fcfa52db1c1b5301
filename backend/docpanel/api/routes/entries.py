"""
DocPanel - Entry Routes
=======================
Project-scoped entry lifecycle endpoints for the admin UI.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from docpanel.api.deps.auth import get_current_user
from docpanel.api.envelope import error_envelope, paged_envelope, success_envelope
from docpanel.core.config import get_settings
from docpanel.models import EntryStore
from docpanel.schemas import BulkActionRequest, EntryForm, PreviewRequest
from docpanel.services.audit_service import Actor
from docpanel.services.bulk_service import bulk_action_service
from docpanel.services.entry_lifecycle import entry_lifecycle_service
from docpanel.services.preview_service import preview_service

router = APIRouter(prefix="/projects/{project_id}", tags=["Entries"])
settings = get_settings()


def _base_url(request: Request) -> str:
    return settings.public_base_url or str(request.base_url)


@router.get("/entries")
async def list_entries(
    project_id: str,
    entry_type: Optional[str] = Query(None, alias="type"),
    status: Optional[str] = None,
    collection: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=500),
    current_user: Actor = Depends(get_current_user),
):
    result = await entry_lifecycle_service.list_entries(
        current_user,
        project_id,
        entry_type=entry_type,
        page=page,
        per_page=per_page,
        status=status,
        collection=collection,
        search=search,
        sort=sort,
    )
    return paged_envelope(result)


@router.get("/archived-entries")
async def list_archived_entries(
    project_id: str,
    entry_type: Optional[str] = Query(None, alias="type"),
    search: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=500),
    current_user: Actor = Depends(get_current_user),
):
    result = await entry_lifecycle_service.list_archived(
        current_user,
        project_id,
        entry_type=entry_type,
        page=page,
        per_page=per_page,
        search=search,
        sort=sort,
    )
    return paged_envelope(result)


@router.post("/entries")
async def create_entry(project_id: str, payload: EntryForm, current_user: Actor = Depends(get_current_user)):
    created = await entry_lifecycle_service.create(payload.model_dump(exclude_none=True), current_user, project_id)
    return success_envelope(created, status_code=201)


@router.post("/entries/bulk-action")
async def bulk_action(project_id: str, payload: BulkActionRequest, current_user: Actor = Depends(get_current_user)):
    result = await bulk_action_service.run(payload.action, payload.ids, current_user, project_id)
    if result.status_code in (200, 207):
        return success_envelope(result.to_dict(), status_code=result.status_code)
    return error_envelope(
        code="bulk_action_failed",
        message=result.message,
        status_code=result.status_code,
        details={"errors": result.errors},
    )


@router.get("/entries/{entry_id}")
async def get_entry(project_id: str, entry_id: str, current_user: Actor = Depends(get_current_user)):
    return success_envelope(await entry_lifecycle_service.get_editable(entry_id, current_user, project_id))


@router.put("/entries/{entry_id}")
async def update_entry(
    project_id: str,
    entry_id: str,
    payload: EntryForm,
    current_user: Actor = Depends(get_current_user),
):
    updated = await entry_lifecycle_service.update(
        entry_id,
        payload.model_dump(exclude_unset=True),
        current_user,
        project_id,
    )
    return success_envelope(updated)


@router.get("/entries/{entry_id}/diff")
async def entry_diff(project_id: str, entry_id: str, current_user: Actor = Depends(get_current_user)):
    return success_envelope(await entry_lifecycle_service.staged_diff(entry_id, current_user, project_id))


@router.post("/entries/{entry_id}/publish-staged")
async def publish_staged(project_id: str, entry_id: str, current_user: Actor = Depends(get_current_user)):
    return success_envelope(await entry_lifecycle_service.publish_staged(entry_id, current_user, project_id))


@router.post("/entries/{entry_id}/archive")
async def archive_entry(project_id: str, entry_id: str, current_user: Actor = Depends(get_current_user)):
    return success_envelope(await entry_lifecycle_service.archive(entry_id, current_user, project_id))


@router.post("/entries/{entry_id}/duplicate")
async def duplicate_entry(
    project_id: str,
    entry_id: str,
    payload: Optional[EntryForm] = None,
    current_user: Actor = Depends(get_current_user),
):
    data = payload.model_dump(exclude_unset=True) if payload else None
    created = await entry_lifecycle_service.duplicate(entry_id, current_user, project_id, data)
    return success_envelope(created, status_code=201)


@router.post("/entries/{entry_id}/generate-preview")
async def generate_preview(
    project_id: str,
    entry_id: str,
    request: Request,
    payload: Optional[PreviewRequest] = None,
    current_user: Actor = Depends(get_current_user),
):
    payload = payload or PreviewRequest()
    issued = await preview_service.issue_token(
        entry_id,
        current_user,
        project_id=project_id,
        password=payload.password,
        base_url=_base_url(request),
        expiry_hours=payload.expiry_hours,
    )
    return success_envelope(issued.to_dict(), status_code=201)


@router.delete("/entries/{entry_id}")
async def delete_entry(project_id: str, entry_id: str, current_user: Actor = Depends(get_current_user)):
    await entry_lifecycle_service.delete(entry_id, current_user, project_id, where=EntryStore.LIVE)
    return success_envelope({"deleted": entry_id})


@router.post("/archived-entries/{archived_id}/unarchive")
async def unarchive_entry(project_id: str, archived_id: str, current_user: Actor = Depends(get_current_user)):
    return success_envelope(await entry_lifecycle_service.unarchive(archived_id, current_user, project_id))


@router.delete("/archived-entries/{archived_id}")
async def delete_archived_entry(project_id: str, archived_id: str, current_user: Actor = Depends(get_current_user)):
    await entry_lifecycle_service.delete(archived_id, current_user, project_id, where=EntryStore.ARCHIVED)
    return success_envelope({"deleted": archived_id})
