"""Cookie-keyed visitor sessions stored as JSON in Redis."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from docpanel.core.config import get_settings
from docpanel.core.logging import get_logger
from docpanel.services.cache_service import CacheService, cache_service

logger = get_logger("services.session_store")
settings = get_settings()


@dataclass
class VisitorSession:
    sid: str
    valid_previews: dict[str, bool] = field(default_factory=dict)
    valid_project_passwords: dict[str, bool] = field(default_factory=dict)
    is_new: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid_previews": self.valid_previews,
            "valid_project_passwords": self.valid_project_passwords,
        }

    def has_preview(self, token: str) -> bool:
        return bool(self.valid_previews.get(token))

    def has_project(self, project_id: str) -> bool:
        return bool(self.valid_project_passwords.get(project_id))


class SessionStore:
    def __init__(self, cache: CacheService | None = None, ttl_hours: int | None = None):
        self.cache = cache or cache_service
        self.ttl = timedelta(hours=ttl_hours or settings.session_ttl_hours)

    @staticmethod
    def _key(sid: str) -> str:
        return f"session:{sid}"

    def new_session(self) -> VisitorSession:
        return VisitorSession(sid=secrets.token_urlsafe(32), is_new=True)

    async def load(self, sid: str | None) -> VisitorSession:
        if not sid:
            return self.new_session()
        data = await self.cache.get_json(self._key(sid))
        if data is None:
            return self.new_session()
        return VisitorSession(
            sid=sid,
            valid_previews=dict(data.get("valid_previews") or {}),
            valid_project_passwords=dict(data.get("valid_project_passwords") or {}),
        )

    async def save(self, session: VisitorSession) -> None:
        await self.cache.set_json(self._key(session.sid), session.to_dict(), ttl=self.ttl)


session_store = SessionStore()
