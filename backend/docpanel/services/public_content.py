"""Public read side: published entries, the project password gate and view recording."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from docpanel.core.background import fire_and_forget
from docpanel.core.errors import RecordStoreError, from_store_error
from docpanel.core.logging import get_logger
from docpanel.domain.entries import rendered_fields
from docpanel.models import Collection, EntryStatus
from docpanel.repositories import filters
from docpanel.repositories.record_store import RecordStore, record_store
from docpanel.services.app_settings_service import AppSettingsService, app_settings_service
from docpanel.services.preview_service import PreviewService, preview_service
from docpanel.services.session_store import VisitorSession
from docpanel.services.view_tracker import ViewTracker, reading_time_minutes, view_tracker

logger = get_logger("services.public_content")


class PublicOutcome(str, enum.Enum):
    CONTENT = "content"
    NOT_FOUND = "not_found"
    PASSWORD_REQUIRED = "password_required"


@dataclass(slots=True)
class PublicView:
    outcome: PublicOutcome
    entry: dict[str, Any] | None = None
    project_id: str | None = None


class PublicContentService:
    def __init__(
        self,
        store: RecordStore | None = None,
        tracker: ViewTracker | None = None,
        previews: PreviewService | None = None,
        app_settings: AppSettingsService | None = None,
    ):
        self.store = store or record_store
        self.tracker = tracker or view_tracker
        self.previews = previews or preview_service
        self.app_settings = app_settings or app_settings_service

    async def _published_entry(self, entry_id: str) -> dict[str, Any] | None:
        try:
            return await self.store.get_first(
                Collection.ENTRIES.value,
                filters.all_of(filters.eq("id", entry_id), filters.eq("status", EntryStatus.PUBLISHED.value)),
            )
        except RecordStoreError as exc:
            if exc.status != 404:
                logger.error("public_entry_load_failed", entry_id=entry_id, status=exc.status, error=exc.message)
            return None

    async def _project(self, project_id: str | None) -> dict[str, Any]:
        if not project_id:
            return {}
        try:
            return await self.store.get(Collection.PROJECTS.value, project_id)
        except RecordStoreError as exc:
            if exc.status == 404:
                return {}
            raise from_store_error(exc, operation="public_project_load", project_id=project_id) from exc

    async def _tracking_enabled(self, project: dict[str, Any], field: str, default_flag: str) -> bool:
        value = project.get(field)
        if value is not None:
            return bool(value)
        return await self.app_settings.is_enabled(default_flag)

    async def get_public_entry(
        self,
        entry_id: str,
        session: VisitorSession,
        *,
        ip: str | None = None,
        user_agent: str | None = None,
        from_admin: bool = False,
    ) -> PublicView:
        record = await self._published_entry(entry_id)
        if record is None:
            return PublicView(PublicOutcome.NOT_FOUND)

        project_id = record.get("project")
        project = await self._project(project_id)
        if project and self.previews.project_requires_password(project) and not session.has_project(project_id):
            return PublicView(PublicOutcome.PASSWORD_REQUIRED, project_id=project_id)

        if await self._tracking_enabled(project, "view_tracking_enabled", "enable_project_view_tracking_default"):
            fire_and_forget(
                self.tracker.record_view(entry_id, ip, user_agent, from_admin=from_admin),
                name=f"view:{entry_id}",
            )

        entry = rendered_fields(record)
        entry["reading_time_minutes"] = reading_time_minutes(entry.get("content"))
        return PublicView(PublicOutcome.CONTENT, entry=entry, project_id=project_id)

    async def record_duration(
        self,
        entry_id: str,
        seconds: int,
        *,
        ip: str | None = None,
        user_agent: str | None = None,
        from_admin: bool = False,
    ) -> bool:
        record = await self._published_entry(entry_id)
        if record is None:
            return False
        project = await self._project(record.get("project"))
        if not await self._tracking_enabled(project, "time_tracking_enabled", "enable_project_time_tracking_default"):
            return False
        return await self.tracker.record_duration(entry_id, seconds, ip, user_agent, from_admin=from_admin)

    async def record_feedback(self, entry_id: str, helpful: bool) -> dict[str, int] | None:
        if await self._published_entry(entry_id) is None:
            return None
        try:
            updated = await self.tracker.record_feedback(entry_id, helpful)
        except RecordStoreError as exc:
            raise from_store_error(exc, operation="entry_feedback", entry_id=entry_id) from exc
        return {"helpful_yes": updated.get("helpful_yes") or 0, "helpful_no": updated.get("helpful_no") or 0}


public_content_service = PublicContentService()
