"""Visitor session cookie handling for the public routes."""

from __future__ import annotations

from fastapi import Request, Response

from docpanel.core.config import get_settings
from docpanel.services.session_store import VisitorSession, session_store

settings = get_settings()


async def get_visitor_session(request: Request) -> VisitorSession:
    return await session_store.load(request.cookies.get(settings.session_cookie_name))


async def persist_session(response: Response, session: VisitorSession) -> None:
    await session_store.save(session)
    response.set_cookie(
        settings.session_cookie_name,
        session.sid,
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
