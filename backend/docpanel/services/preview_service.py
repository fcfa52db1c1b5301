"""
DocPanel - Preview Access Gate
==============================
Time-limited, optionally password-protected capability links for draft
entries. At most one token per entry is intended: issuing a new one deletes
the old ones first.

Token lifecycle: issued -> [password pending] -> granted -> expired | revoked.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from docpanel.core.config import get_settings
from docpanel.core.errors import InvalidState, RecordStoreError, from_store_error
from docpanel.core.logging import get_logger
from docpanel.core.security import generate_token, hash_secret_password, verify_secret_password
from docpanel.domain.entries import rendered_fields
from docpanel.models import Collection, EntryStatus, EntryStore
from docpanel.repositories import filters
from docpanel.repositories.record_store import RecordStore, record_store
from docpanel.services.audit_service import Actor, AuditService, audit_service
from docpanel.services.entry_access import get_entry_for_owner
from docpanel.services.session_store import VisitorSession

logger = get_logger("services.preview")
settings = get_settings()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PreviewOutcome(str, enum.Enum):
    CONTENT = "content"
    PASSWORD_REQUIRED = "password_required"
    INVALID = "invalid"
    ENTRY_MISSING = "entry_missing"


@dataclass(slots=True)
class IssuedPreview:
    token: str
    preview_url: str
    expires_at: datetime
    has_password: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "preview_url": self.preview_url,
            "expires_at": self.expires_at.isoformat(),
            "has_password": self.has_password,
        }


@dataclass(slots=True)
class PreviewResolution:
    outcome: PreviewOutcome
    token: str
    entry: dict[str, Any] | None = None


@dataclass(slots=True)
class PasswordCheck:
    ok: bool
    error: str | None = None
    session_changed: bool = False


def preview_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/preview/{token}"


def password_url(base_url: str, token: str) -> str:
    return f"{preview_url(base_url, token)}/password"


class PreviewService:
    def __init__(
        self,
        store: RecordStore | None = None,
        audit: AuditService | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        expiry_hours: int | None = None,
    ):
        self.store = store or record_store
        self.audit = audit or audit_service
        self.clock = clock
        self.expiry_hours = expiry_hours or settings.preview_token_expiry_hours

    # ── Issuance ──

    async def issue_token(
        self,
        entry_id: str,
        actor: Actor,
        *,
        project_id: str | None = None,
        password: str | None = None,
        base_url: str = "",
        expiry_hours: int | None = None,
    ) -> IssuedPreview:
        audit_base = {"project_id": project_id, "entry_id": entry_id}
        try:
            entry = await get_entry_for_owner(self.store, EntryStore.LIVE, entry_id, actor.user_id, project_id)
        except Exception as exc:
            self.audit.emit(
                actor,
                "PREVIEW_GENERATE_FAILURE",
                target_collection=Collection.ENTRIES.value,
                target_record=entry_id,
                details={**audit_base, "error": str(exc)},
            )
            raise

        if entry.get("status") != EntryStatus.DRAFT.value:
            self.audit.emit(
                actor,
                "PREVIEW_GENERATE_FAILURE",
                target_collection=Collection.ENTRIES.value,
                target_record=entry_id,
                details={**audit_base, "reason": "Not a draft"},
            )
            raise InvalidState("Preview links can only be generated for drafts.")

        await self.purge_tokens(entry_id)

        token = generate_token(32)
        expires_at = self.clock() + timedelta(hours=expiry_hours or self.expiry_hours)
        password_hash = hash_secret_password(password or "")
        try:
            created = await self.store.create(
                Collection.PREVIEWS.value,
                {
                    "entry": entry_id,
                    "token": token,
                    "expires_at": filters.format_timestamp(expires_at),
                    "password_hash": password_hash,
                },
            )
        except RecordStoreError as exc:
            self.audit.emit(
                actor,
                "PREVIEW_GENERATE_FAILURE",
                target_collection=Collection.ENTRIES.value,
                target_record=entry_id,
                details={**audit_base, "error": exc.message},
            )
            raise from_store_error(exc, operation="preview_issue", entry_id=entry_id) from exc

        self.audit.emit(
            actor,
            "PREVIEW_GENERATE_SUCCESS",
            target_collection=Collection.PREVIEWS.value,
            target_record=created.get("id"),
            details={**audit_base, "has_password": password_hash is not None},
        )
        logger.info("preview_issued", entry_id=entry_id, has_password=password_hash is not None)
        return IssuedPreview(
            token=token,
            preview_url=preview_url(base_url or settings.public_base_url, token),
            expires_at=expires_at,
            has_password=password_hash is not None,
        )

    async def purge_tokens(self, entry_id: str) -> int:
        """Delete every token for an entry. Best effort: failures are logged only."""
        removed = 0
        try:
            tokens = await self.store.list_all(
                Collection.PREVIEWS.value,
                filter=filters.eq("entry", entry_id),
                fields="id",
            )
            for token in tokens:
                await self.store.delete(Collection.PREVIEWS.value, token["id"])
                removed += 1
        except RecordStoreError as exc:
            logger.warning("preview_purge_failed", entry_id=entry_id, removed=removed, error=exc.message)
        return removed

    # ── Public side ──

    async def _active_token(self, token: str) -> dict[str, Any] | None:
        if not token:
            return None
        now = self.clock()
        try:
            record = await self.store.get_first(
                Collection.PREVIEWS.value,
                filters.all_of(filters.eq("token", token), filters.cmp("expires_at", ">", now)),
            )
        except RecordStoreError as exc:
            if exc.status == 404:
                return None
            raise from_store_error(exc, operation="preview_lookup") from exc
        if record is None:
            return None
        expires_at = filters.parse_timestamp(record.get("expires_at"))
        if expires_at is None or not now < expires_at:
            return None
        return record

    async def resolve(self, token: str, session: VisitorSession) -> PreviewResolution:
        record = await self._active_token(token)
        if record is None:
            return PreviewResolution(PreviewOutcome.INVALID, token)

        if record.get("password_hash") and not session.has_preview(token):
            return PreviewResolution(PreviewOutcome.PASSWORD_REQUIRED, token)

        try:
            entry = await self.store.get(Collection.ENTRIES.value, record.get("entry") or "")
        except RecordStoreError as exc:
            if exc.status != 404:
                logger.error("preview_entry_load_failed", token_id=record.get("id"), error=exc.message)
            return PreviewResolution(PreviewOutcome.ENTRY_MISSING, token)
        return PreviewResolution(PreviewOutcome.CONTENT, token, entry=rendered_fields(entry))

    async def verify_password(
        self,
        token: str,
        password: str | None,
        session: VisitorSession,
        *,
        actor: Actor | None = None,
    ) -> PasswordCheck:
        if not password:
            return PasswordCheck(ok=False, error="Password is required")

        record = await self._active_token(token)
        if record is None:
            return PasswordCheck(ok=False, error="Invalid or expired link")
        if not record.get("password_hash"):
            return PasswordCheck(ok=False, error="Invalid request")

        if verify_secret_password(password, record["password_hash"]):
            session.valid_previews[token] = True
            self.audit.emit(
                actor,
                "PREVIEW_PASSWORD_SUCCESS",
                target_collection=Collection.PREVIEWS.value,
                target_record=record.get("id"),
            )
            return PasswordCheck(ok=True, session_changed=True)

        self.audit.emit(
            actor,
            "PREVIEW_PASSWORD_FAILURE",
            target_collection=Collection.PREVIEWS.value,
            target_record=record.get("id"),
        )
        return PasswordCheck(ok=False, error="Incorrect password")

    # ── Project gate ──

    @staticmethod
    def project_requires_password(project: dict[str, Any]) -> bool:
        return bool(project.get("password_protected")) and bool(project.get("access_password_hash"))

    async def verify_project_password(
        self,
        project_id: str,
        password: str | None,
        session: VisitorSession,
        *,
        actor: Actor | None = None,
    ) -> PasswordCheck:
        if not password:
            return PasswordCheck(ok=False, error="Password is required")
        try:
            project = await self.store.get(Collection.PROJECTS.value, project_id)
        except RecordStoreError as exc:
            if exc.status == 404:
                return PasswordCheck(ok=False, error="Invalid request")
            raise from_store_error(exc, operation="project_password_lookup", project_id=project_id) from exc

        if not self.project_requires_password(project):
            return PasswordCheck(ok=False, error="Invalid request")

        if verify_secret_password(password, project["access_password_hash"]):
            session.valid_project_passwords[project_id] = True
            self.audit.emit(
                actor,
                "PROJECT_PASSWORD_SUCCESS",
                target_collection=Collection.PROJECTS.value,
                target_record=project_id,
            )
            return PasswordCheck(ok=True, session_changed=True)

        self.audit.emit(
            actor,
            "PROJECT_PASSWORD_FAILURE",
            target_collection=Collection.PROJECTS.value,
            target_record=project_id,
        )
        return PasswordCheck(ok=False, error="Incorrect password")


preview_service = PreviewService()
