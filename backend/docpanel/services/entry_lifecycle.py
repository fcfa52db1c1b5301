"""
DocPanel - Entry Lifecycle Manager
==================================
Create, staged/direct update, publish-staged, archive/unarchive, delete and
duplicate for content entries.

Reads and writes are not transactional against the record store: a
concurrent edit between load and write is overwritten. Cleanup side effects
(preview-token purge, view-log clear) and audit writes run detached and
never change the outcome of the primary operation.
"""

from __future__ import annotations

from typing import Any

from docpanel.core.background import fire_and_forget
from docpanel.core.config import get_settings
from docpanel.core.errors import (
    DocPanelError,
    IdConflict,
    InvalidState,
    RecordStoreError,
    UnarchiveConflict,
    ValidationFailed,
    from_store_error,
)
from docpanel.core.logging import get_logger
from docpanel.domain.entries import (
    EntrySubmission,
    UpdateMode,
    build_archive_payload,
    build_create_payload,
    build_duplicate_payload,
    build_publish_staged_patch,
    build_unarchive_payload,
    can_publish_staged,
    content_diff,
    editable_view,
    plan_update,
    validate_create,
    validate_duplicate,
    validate_update,
)
from docpanel.domain.entries.views import FORM_FIELDS
from docpanel.models import Collection, EntryStatus, EntryStore, EntryType, cleared_staging
from docpanel.repositories import filters
from docpanel.repositories.record_store import RecordStore, record_store
from docpanel.services.audit_service import Actor, AuditService, audit_service
from docpanel.services.entry_access import get_entry_for_owner
from docpanel.services.preview_service import PreviewService, preview_service
from docpanel.services.view_tracker import ViewTracker, view_tracker

logger = get_logger("services.entry_lifecycle")
settings = get_settings()

LIST_FIELDS = "id,title,status,type,collection,views,updated,owner,has_staged_changes,tags,roadmap_stage"
ARCHIVED_LIST_FIELDS = "id,title,status,type,collection,views,updated,owner,original_id,roadmap_stage"
ALLOWED_SORTS = {"-updated", "updated", "-created", "created", "title", "-title", "views", "-views", "sidebar_order"}


def failure_details(exc: DocPanelError) -> dict[str, Any]:
    """Audit detail for a failed operation, keeping the record store message when there is one."""
    details: dict[str, Any] = {"reason": exc.message, "status": exc.status_code}
    if isinstance(exc.__cause__, RecordStoreError):
        details["error"] = exc.__cause__.message
    return details


class EntryLifecycleService:
    def __init__(
        self,
        store: RecordStore | None = None,
        audit: AuditService | None = None,
        previews: PreviewService | None = None,
        tracker: ViewTracker | None = None,
    ):
        self.store = store or record_store
        self.audit = audit or audit_service
        self.previews = previews or preview_service
        self.tracker = tracker or view_tracker

    # ── Detached cleanup ──

    def _purge_previews_later(self, entry_id: str) -> None:
        fire_and_forget(self.previews.purge_tokens(entry_id), name=f"preview_purge:{entry_id}")

    def _clear_views_later(self, entry_id: str | None) -> None:
        if entry_id:
            fire_and_forget(self.tracker.clear_view_logs(entry_id), name=f"view_log_clear:{entry_id}")

    # ── Reads ──

    async def get_entry(self, entry_id: str, actor: Actor, project_id: str | None = None) -> dict[str, Any]:
        return await get_entry_for_owner(self.store, EntryStore.LIVE, entry_id, actor.user_id, project_id)

    async def get_editable(self, entry_id: str, actor: Actor, project_id: str | None = None) -> dict[str, Any]:
        record = await self.get_entry(entry_id, actor, project_id)
        return editable_view(record)

    async def staged_diff(self, entry_id: str, actor: Actor, project_id: str | None = None) -> dict[str, Any]:
        record = await self.get_entry(entry_id, actor, project_id)
        if record.get("status") != EntryStatus.PUBLISHED.value or not record.get("has_staged_changes"):
            raise InvalidState("Entry is not published or has no staged changes.")
        self.audit.emit(
            actor,
            "ENTRY_DIFF_VIEW",
            target_collection=Collection.ENTRIES.value,
            target_record=entry_id,
            details={"project_id": project_id},
        )
        return content_diff(record)

    def _list_filter(
        self,
        owner_id: str,
        project_id: str,
        *,
        entry_type: str | None,
        status: str | None,
        collection: str | None,
        search: str | None,
    ) -> str:
        clauses = [filters.eq("owner", owner_id), filters.eq("project", project_id)]
        if entry_type:
            if entry_type not in {t.value for t in EntryType}:
                raise ValidationFailed({"type": "Invalid or missing entry type filter."})
            clauses.append(filters.eq("type", entry_type))
        if status in (EntryStatus.DRAFT.value, EntryStatus.PUBLISHED.value):
            clauses.append(filters.eq("status", status))
        if collection and collection.strip():
            clauses.append(filters.eq("collection", collection))
        if search and search.strip():
            term = search.strip()
            clauses.append(
                filters.any_of(
                    filters.like("title", term),
                    filters.like("collection", term),
                    filters.like("tags", term),
                )
            )
        return filters.all_of(*clauses)

    async def _list(
        self,
        where: EntryStore,
        owner_id: str,
        project_id: str,
        *,
        page: int,
        per_page: int | None,
        sort: str | None,
        fields: str,
        **criteria: Any,
    ) -> dict[str, Any]:
        expression = self._list_filter(owner_id, project_id, **criteria)
        try:
            result = await self.store.list(
                where.collection.value,
                page=page,
                per_page=per_page or settings.items_per_page,
                filter=expression,
                sort=sort if sort in ALLOWED_SORTS else "-updated",
                fields=fields,
            )
        except RecordStoreError as exc:
            if exc.status == 400:
                raise ValidationFailed({"filter": "Invalid search or filter criteria."}) from exc
            raise from_store_error(exc, operation="entry_list", store=where.value) from exc
        for item in result.get("items") or []:
            item["has_staged_changes"] = bool(item.get("has_staged_changes"))
        return result

    async def list_entries(
        self,
        actor: Actor,
        project_id: str,
        *,
        entry_type: str | None = None,
        page: int = 1,
        per_page: int | None = None,
        status: str | None = None,
        collection: str | None = None,
        search: str | None = None,
        sort: str | None = None,
    ) -> dict[str, Any]:
        return await self._list(
            EntryStore.LIVE,
            actor.user_id,
            project_id,
            page=page,
            per_page=per_page,
            sort=sort,
            fields=LIST_FIELDS,
            entry_type=entry_type,
            status=status,
            collection=collection,
            search=search,
        )

    async def list_archived(
        self,
        actor: Actor,
        project_id: str,
        *,
        entry_type: str | None = None,
        page: int = 1,
        per_page: int | None = None,
        search: str | None = None,
        sort: str | None = None,
    ) -> dict[str, Any]:
        return await self._list(
            EntryStore.ARCHIVED,
            actor.user_id,
            project_id,
            page=page,
            per_page=per_page,
            sort=sort,
            fields=ARCHIVED_LIST_FIELDS,
            entry_type=entry_type,
            status=None,
            collection=None,
            search=search,
        )

    # ── Create ──

    async def create(self, data: dict[str, Any], actor: Actor, project_id: str | None = None) -> dict[str, Any]:
        sub = EntrySubmission.from_mapping(data)
        errors = validate_create(sub)
        if errors:
            logger.warning("entry_create_validation_failed", project_id=project_id, fields=list(errors))
            raise ValidationFailed(errors, submitted=sub.as_form())

        payload = build_create_payload(sub, owner_id=actor.user_id, project_id=project_id)
        try:
            created = await self.store.create(Collection.ENTRIES.value, payload)
        except RecordStoreError as exc:
            self.audit.emit(
                actor,
                "ENTRY_CREATE_FAILURE",
                target_collection=Collection.ENTRIES.value,
                details={"project_id": project_id, "error": exc.message, "title": sub.title, "type": sub.type},
            )
            if exc.is_conflict:
                raise IdConflict(details={"fields": {"url": IdConflict.default_message}, "submitted": sub.as_form()}) from exc
            raise from_store_error(exc, operation="entry_create", project_id=project_id) from exc

        logger.info("entry_created", entry_id=created.get("id"), project_id=project_id, type=sub.type)
        self.audit.emit(
            actor,
            "ENTRY_CREATE",
            target_collection=Collection.ENTRIES.value,
            target_record=created.get("id"),
            details={
                "project_id": project_id,
                "title": created.get("title"),
                "status": created.get("status"),
                "type": created.get("type"),
                "stage": created.get("roadmap_stage"),
            },
        )
        return created

    # ── Update ──

    async def update(
        self,
        entry_id: str,
        data: dict[str, Any],
        actor: Actor,
        project_id: str | None = None,
    ) -> dict[str, Any]:
        try:
            current = await self.get_entry(entry_id, actor, project_id)
        except DocPanelError as exc:
            self.audit.emit(
                actor,
                "ENTRY_UPDATE_FAILURE",
                target_collection=Collection.ENTRIES.value,
                target_record=entry_id,
                details={"project_id": project_id, "reason": exc.message},
            )
            raise

        base = editable_view(current)
        merged = {key: base.get(key) for key in FORM_FIELDS}
        merged.update({key: value for key, value in data.items() if key in FORM_FIELDS})
        sub = EntrySubmission.from_mapping(merged)
        if not sub.type:
            sub.type = current.get("type") or ""

        errors = validate_update(sub)
        if errors:
            logger.warning("entry_update_validation_failed", entry_id=entry_id, fields=list(errors))
            raise ValidationFailed(errors, submitted=sub.as_form())

        plan = plan_update(current, sub)
        try:
            updated = await self.store.update(Collection.ENTRIES.value, entry_id, plan.patch)
        except RecordStoreError as exc:
            self.audit.emit(
                actor,
                "ENTRY_UPDATE_FAILURE",
                target_collection=Collection.ENTRIES.value,
                target_record=entry_id,
                details={"project_id": project_id, "error": exc.message},
            )
            if exc.status == 400 and exc.field_messages():
                raise ValidationFailed(exc.field_messages(), submitted=sub.as_form()) from exc
            raise from_store_error(exc, operation="entry_update", entry_id=entry_id) from exc

        logger.info("entry_updated", entry_id=entry_id, mode=plan.mode.value, action=plan.action)
        self.audit.emit(
            actor,
            plan.action,
            target_collection=Collection.ENTRIES.value,
            target_record=entry_id,
            details={
                "project_id": project_id,
                "title": updated.get("title"),
                "status": updated.get("status"),
                "type": updated.get("type"),
                "stage": updated.get("roadmap_stage"),
                "staged": plan.mode is UpdateMode.STAGE,
            },
        )
        return updated

    # ── Per-record steps ──
    # Shared by the single-entry endpoints and bulk actions. Each takes a
    # record already loaded through the ownership check, raises DocPanelError
    # and writes no audit rows.

    async def _rollback_create(self, collection: Collection, record_id: str | None, *, operation: str) -> None:
        if not record_id:
            return
        try:
            await self.store.delete(collection.value, record_id)
        except RecordStoreError as exc:
            logger.error(
                "entry_rollback_failed",
                operation=operation,
                collection=collection.value,
                record_id=record_id,
                error=exc.message,
            )
            return
        logger.warning("entry_rolled_back", operation=operation, collection=collection.value, record_id=record_id)

    async def set_status(self, record: dict[str, Any], status: EntryStatus) -> dict[str, Any]:
        patch: dict[str, Any] = {"status": status.value}
        if status is EntryStatus.DRAFT:
            patch.update(cleared_staging())
        try:
            return await self.store.update(Collection.ENTRIES.value, record["id"], patch)
        except RecordStoreError as exc:
            raise from_store_error(exc, operation="entry_set_status", entry_id=record["id"], status=status.value) from exc

    async def apply_publish_staged(self, record: dict[str, Any]) -> dict[str, Any]:
        if not can_publish_staged(record):
            raise InvalidState("Entry is not published or has no staged changes.")
        try:
            return await self.store.update(Collection.ENTRIES.value, record["id"], build_publish_staged_patch(record))
        except RecordStoreError as exc:
            raise from_store_error(exc, operation="entry_publish_staged", entry_id=record["id"]) from exc

    async def apply_archive(self, record: dict[str, Any]) -> str | None:
        """Move a live record into the archive and return the archived id.

        Sidebar headers have no archived form: they are deleted and None is
        returned. If the live delete fails the archived copy is removed again.
        """
        entry_id = record["id"]
        if record.get("type") == EntryType.SIDEBAR_HEADER.value:
            try:
                await self.store.delete(Collection.ENTRIES.value, entry_id)
            except RecordStoreError as exc:
                raise from_store_error(exc, operation="entry_archive_header_delete", entry_id=entry_id) from exc
            logger.warning("entry_archive_header_deleted", entry_id=entry_id)
            self._purge_previews_later(entry_id)
            return None

        try:
            archived = await self.store.create(Collection.ENTRIES_ARCHIVED.value, build_archive_payload(record))
        except RecordStoreError as exc:
            raise from_store_error(exc, operation="entry_archive", entry_id=entry_id) from exc
        try:
            await self.store.delete(Collection.ENTRIES.value, entry_id)
        except RecordStoreError as exc:
            await self._rollback_create(Collection.ENTRIES_ARCHIVED, archived.get("id"), operation="entry_archive")
            raise from_store_error(exc, operation="entry_archive_cleanup", entry_id=entry_id) from exc

        logger.info("entry_archived", entry_id=entry_id, archived_id=archived.get("id"))
        self._purge_previews_later(entry_id)
        return archived.get("id")

    async def apply_unarchive(self, record: dict[str, Any]) -> dict[str, Any]:
        """Restore an archived record under its original id.

        The restored record is removed again when the archived copy cannot be
        deleted, so an entry never ends up in both stores.
        """
        archived_id = record["id"]
        try:
            restored = await self.store.create(Collection.ENTRIES.value, build_unarchive_payload(record))
        except RecordStoreError as exc:
            if exc.is_conflict:
                logger.info("entry_unarchive_conflict", archived_id=archived_id, original_id=record.get("original_id"))
                raise UnarchiveConflict() from exc
            raise from_store_error(exc, operation="entry_unarchive", archived_id=archived_id) from exc
        try:
            await self.store.delete(Collection.ENTRIES_ARCHIVED.value, archived_id)
        except RecordStoreError as exc:
            await self._rollback_create(Collection.ENTRIES, restored.get("id"), operation="entry_unarchive")
            raise from_store_error(exc, operation="entry_unarchive_cleanup", archived_id=archived_id) from exc

        logger.info("entry_unarchived", archived_id=archived_id, entry_id=restored.get("id"))
        return restored

    async def apply_delete(self, record: dict[str, Any], where: EntryStore = EntryStore.LIVE) -> None:
        entry_id = record["id"]
        try:
            await self.store.delete(where.collection.value, entry_id)
        except RecordStoreError as exc:
            raise from_store_error(exc, operation="entry_delete", entry_id=entry_id, store=where.value) from exc

        # View logs and preview tokens are keyed by the live id.
        cleanup_id = entry_id if where is EntryStore.LIVE else record.get("original_id") or entry_id
        self._clear_views_later(cleanup_id)
        self._purge_previews_later(cleanup_id)
        logger.info("entry_deleted", entry_id=entry_id, store=where.value)

    # ── Publish staged ──

    async def publish_staged(self, entry_id: str, actor: Actor, project_id: str | None = None) -> dict[str, Any]:
        try:
            record = await self.get_entry(entry_id, actor, project_id)
            updated = await self.apply_publish_staged(record)
        except DocPanelError as exc:
            self.audit.emit(
                actor,
                "ENTRY_PUBLISH_STAGED_FAILURE",
                target_collection=Collection.ENTRIES.value,
                target_record=entry_id,
                details={"project_id": project_id, **failure_details(exc)},
            )
            raise

        logger.info("entry_staged_published", entry_id=entry_id)
        self.audit.emit(
            actor,
            "ENTRY_PUBLISH_STAGED",
            target_collection=Collection.ENTRIES.value,
            target_record=entry_id,
            details={
                "project_id": project_id,
                "title": updated.get("title"),
                "type": updated.get("type"),
                "stage": updated.get("roadmap_stage"),
            },
        )
        return updated

    # ── Archive / unarchive ──

    async def archive(self, entry_id: str, actor: Actor, project_id: str | None = None) -> dict[str, Any]:
        """Move an entry to the archive. Sidebar headers are deleted instead.

        Returns {"archived": bool, "archived_id": str | None}.
        """
        record = await self.get_entry(entry_id, actor, project_id)
        base_details = {"project_id": project_id, "title": record.get("title"), "type": record.get("type")}
        header = record.get("type") == EntryType.SIDEBAR_HEADER.value

        try:
            archived_id = await self.apply_archive(record)
        except DocPanelError as exc:
            if header:
                raise
            self.audit.emit(
                actor,
                "ENTRY_ARCHIVE_FAILURE",
                target_collection=Collection.ENTRIES.value,
                target_record=entry_id,
                details={**base_details, **failure_details(exc)},
            )
            raise

        if archived_id is None:
            self.audit.emit(
                actor,
                "ENTRY_DELETE",
                target_collection=Collection.ENTRIES.value,
                target_record=entry_id,
                details={**base_details, "reason": "Attempted archive on sidebar header"},
            )
            return {"archived": False, "archived_id": None}

        self.audit.emit(
            actor,
            "ENTRY_ARCHIVE",
            target_collection=Collection.ENTRIES.value,
            target_record=entry_id,
            details={**base_details, "archived_id": archived_id},
        )
        return {"archived": True, "archived_id": archived_id}

    async def unarchive(self, archived_id: str, actor: Actor, project_id: str | None = None) -> dict[str, Any]:
        record = await get_entry_for_owner(self.store, EntryStore.ARCHIVED, archived_id, actor.user_id, project_id)
        try:
            restored = await self.apply_unarchive(record)
        except DocPanelError as exc:
            self.audit.emit(
                actor,
                "ENTRY_UNARCHIVE_FAILURE",
                target_collection=Collection.ENTRIES_ARCHIVED.value,
                target_record=archived_id,
                details={
                    "project_id": project_id,
                    **failure_details(exc),
                    "conflict": isinstance(exc, UnarchiveConflict),
                },
            )
            raise

        self.audit.emit(
            actor,
            "ENTRY_UNARCHIVE",
            target_collection=Collection.ENTRIES_ARCHIVED.value,
            target_record=archived_id,
            details={"project_id": project_id, "title": record.get("title"), "new_id": restored.get("id")},
        )
        return restored

    # ── Delete ──

    async def delete(
        self,
        entry_id: str,
        actor: Actor,
        project_id: str | None = None,
        *,
        where: EntryStore = EntryStore.LIVE,
    ) -> None:
        record = await get_entry_for_owner(self.store, where, entry_id, actor.user_id, project_id)
        action = "ENTRY_DELETE" if where is EntryStore.LIVE else "ENTRY_ARCHIVED_DELETE"
        details = {"project_id": project_id, "title": record.get("title"), "type": record.get("type")}
        if where is EntryStore.ARCHIVED:
            details["original_id"] = record.get("original_id")
        try:
            await self.apply_delete(record, where)
        except DocPanelError as exc:
            self.audit.emit(
                actor,
                f"{action}_FAILURE",
                target_collection=where.collection.value,
                target_record=entry_id,
                details={**details, **failure_details(exc)},
            )
            raise

        self.audit.emit(actor, action, target_collection=where.collection.value, target_record=entry_id, details=details)

    # ── Duplicate ──

    async def duplicate(
        self,
        entry_id: str,
        actor: Actor,
        project_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        source = await self.get_entry(entry_id, actor, project_id)
        merged = {key: value for key, value in editable_view(source).items() if key in FORM_FIELDS}
        merged.update({key: value for key, value in (data or {}).items() if key in FORM_FIELDS})
        sub = EntrySubmission.from_mapping(merged)

        errors = validate_duplicate(sub)
        if errors:
            raise ValidationFailed(errors, submitted=sub.as_form())

        payload = build_duplicate_payload(sub, owner_id=actor.user_id, project_id=project_id or source.get("project"))
        try:
            created = await self.store.create(Collection.ENTRIES.value, payload)
        except RecordStoreError as exc:
            raise from_store_error(exc, operation="entry_duplicate", entry_id=entry_id) from exc

        self.audit.emit(
            actor,
            "ENTRY_DUPLICATE",
            target_collection=Collection.ENTRIES.value,
            target_record=created.get("id"),
            details={
                "project_id": project_id,
                "original_entry_id": entry_id,
                "new_title": created.get("title"),
                "new_type": created.get("type"),
            },
        )
        return created


entry_lifecycle_service = EntryLifecycleService()
