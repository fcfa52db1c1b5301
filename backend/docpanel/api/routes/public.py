"""
DocPanel - Public Routes
========================
Published entry views, reading-time/feedback beacons and the preview gate.
Responses carry the authoritative field set as JSON.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from docpanel.api.deps.auth import get_request_actor
from docpanel.api.deps.session import get_visitor_session, persist_session
from docpanel.api.envelope import error_envelope, success_envelope
from docpanel.schemas import DurationSubmit, FeedbackSubmit, PasswordSubmit
from docpanel.services.audit_service import Actor
from docpanel.services.preview_service import PreviewOutcome, password_url, preview_service
from docpanel.services.public_content import PublicOutcome, public_content_service
from docpanel.services.session_store import VisitorSession

router = APIRouter(tags=["Public"])

INVALID_PREVIEW_MESSAGE = "This preview link is invalid or has expired."


def _wants_html(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "text/html" in accept and "application/json" not in accept


def _not_found():
    return error_envelope(code="not_found", message="Entry not found", status_code=404)


# ── Published entries ──

@router.get("/view/{entry_id}")
async def view_entry(
    entry_id: str,
    request: Request,
    actor: Actor = Depends(get_request_actor),
    session: VisitorSession = Depends(get_visitor_session),
):
    result = await public_content_service.get_public_entry(
        entry_id,
        session,
        ip=actor.ip,
        user_agent=request.headers.get("user-agent"),
        from_admin=actor.user_id is not None,
    )
    if result.outcome is PublicOutcome.NOT_FOUND:
        return _not_found()
    if result.outcome is PublicOutcome.PASSWORD_REQUIRED:
        return error_envelope(
            code="project_password_required",
            message="This project is password protected.",
            status_code=401,
            details={"project_id": result.project_id, "password_url": f"/view/project/{result.project_id}/password"},
        )
    return success_envelope(result.entry)


@router.post("/view/{entry_id}/duration")
async def view_duration(
    entry_id: str,
    payload: DurationSubmit,
    request: Request,
    actor: Actor = Depends(get_request_actor),
):
    recorded = await public_content_service.record_duration(
        entry_id,
        payload.seconds,
        ip=actor.ip,
        user_agent=request.headers.get("user-agent"),
        from_admin=actor.user_id is not None,
    )
    return success_envelope({"recorded": recorded})


@router.post("/view/{entry_id}/feedback")
async def view_feedback(entry_id: str, payload: FeedbackSubmit):
    counts = await public_content_service.record_feedback(entry_id, payload.helpful)
    if counts is None:
        return _not_found()
    return success_envelope(counts)


@router.post("/view/project/{project_id}/password")
async def project_password(
    project_id: str,
    payload: PasswordSubmit,
    actor: Actor = Depends(get_request_actor),
    session: VisitorSession = Depends(get_visitor_session),
):
    check = await preview_service.verify_project_password(project_id, payload.password, session, actor=actor)
    if not check.ok:
        return error_envelope(code="password_rejected", message=check.error or "Incorrect password", status_code=401)
    response = success_envelope({"granted": True, "project_id": project_id})
    await persist_session(response, session)
    return response


# ── Preview gate ──

@router.get("/preview/{token}/password")
async def preview_password_step(token: str):
    return success_envelope({"token": token, "submit_url": f"/preview/{token}"})


@router.get("/preview/{token}")
async def preview_entry(
    token: str,
    request: Request,
    session: VisitorSession = Depends(get_visitor_session),
):
    result = await preview_service.resolve(token, session)
    if result.outcome in (PreviewOutcome.INVALID, PreviewOutcome.ENTRY_MISSING):
        return error_envelope(code="invalid_preview", message=INVALID_PREVIEW_MESSAGE, status_code=404)
    if result.outcome is PreviewOutcome.PASSWORD_REQUIRED:
        if _wants_html(request):
            return RedirectResponse(password_url("", token), status_code=303)
        return error_envelope(
            code="password_required",
            message="This preview is password protected.",
            status_code=401,
            details={"password_url": password_url("", token)},
        )
    return success_envelope(result.entry, meta={"preview": True})


@router.post("/preview/{token}")
async def preview_password(
    token: str,
    payload: PasswordSubmit,
    actor: Actor = Depends(get_request_actor),
    session: VisitorSession = Depends(get_visitor_session),
):
    check = await preview_service.verify_password(token, payload.password, session, actor=actor)
    if not check.ok:
        return error_envelope(
            code="password_rejected",
            message=check.error or "Incorrect password",
            status_code=401,
            details={"password_url": password_url("", token)},
        )
    response = success_envelope({"granted": True, "preview_url": f"/preview/{token}"})
    await persist_session(response, session)
    return response
