"""
DocPanel - Bulk entry actions
=============================
Applies one action to a list of ids. Each id is processed on its own through
the same per-record steps the single-entry endpoints use; a failure for one
id is recorded and the batch moves on.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from docpanel.core.errors import DocPanelError
from docpanel.core.logging import get_logger
from docpanel.models import EntryStatus, EntryStore
from docpanel.services.audit_service import Actor
from docpanel.services.entry_access import get_entry_for_owner
from docpanel.services.entry_lifecycle import EntryLifecycleService, entry_lifecycle_service

logger = get_logger("services.bulk")


class BulkAction(str, enum.Enum):
    PUBLISH = "publish"
    DRAFT = "draft"
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    DELETE = "delete"
    PERMANENT_DELETE = "permanent-delete"
    PUBLISH_STAGED = "publish-staged"

    @property
    def source(self) -> EntryStore:
        if self in (BulkAction.UNARCHIVE, BulkAction.PERMANENT_DELETE):
            return EntryStore.ARCHIVED
        return EntryStore.LIVE

    @property
    def audit_name(self) -> str:
        return f"BULK_{self.value.upper()}"


@dataclass(slots=True)
class BulkResult:
    action: BulkAction
    status_code: int
    succeeded: list[str] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def message(self) -> str:
        ok, failed = len(self.succeeded), len(self.errors)
        if not failed:
            return f"Successfully performed action '{self.action.value}' on {ok} entries."
        if ok:
            return f"Action '{self.action.value}' completed with some errors. {ok} succeeded, {failed} failed."
        return f"Failed to perform action '{self.action.value}' on any selected entries."

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "message": self.message,
            "succeeded": list(self.succeeded),
            "errors": list(self.errors),
        }


def overall_status(succeeded: int, errors: list[dict[str, Any]]) -> int:
    if not errors:
        return 200
    if succeeded:
        return 207
    if all(err["status"] == 403 for err in errors):
        return 403
    return errors[0]["status"] or 500


class BulkActionService:
    def __init__(self, lifecycle: EntryLifecycleService | None = None):
        self.lifecycle = lifecycle or entry_lifecycle_service
        self.audit = self.lifecycle.audit

    async def _apply(self, action: BulkAction, record: dict[str, Any], details: dict[str, Any]) -> None:
        lifecycle = self.lifecycle
        if action is BulkAction.PUBLISH:
            await lifecycle.set_status(record, EntryStatus.PUBLISHED)
        elif action is BulkAction.DRAFT:
            await lifecycle.set_status(record, EntryStatus.DRAFT)
        elif action is BulkAction.PUBLISH_STAGED:
            await lifecycle.apply_publish_staged(record)
        elif action is BulkAction.ARCHIVE:
            archived_id = await lifecycle.apply_archive(record)
            if archived_id is None:
                details["reason"] = "Attempted archive on sidebar header"
            else:
                details["archived_id"] = archived_id
        elif action is BulkAction.UNARCHIVE:
            restored = await lifecycle.apply_unarchive(record)
            details["new_id"] = restored.get("id")
        elif action is BulkAction.DELETE:
            await lifecycle.apply_delete(record, EntryStore.LIVE)
        elif action is BulkAction.PERMANENT_DELETE:
            await lifecycle.apply_delete(record, EntryStore.ARCHIVED)
            details["original_id"] = record.get("original_id")

    async def _run_one(
        self,
        action: BulkAction,
        entry_id: str,
        actor: Actor,
        project_id: str,
    ) -> dict[str, Any] | None:
        source = action.source
        details: dict[str, Any] = {"id": entry_id, "project_id": project_id}
        try:
            record = await get_entry_for_owner(self.lifecycle.store, source, entry_id, actor.user_id, project_id)
            details.update(title=record.get("title"), type=record.get("type"), stage=record.get("roadmap_stage"))
            await self._apply(action, record, details)
        except DocPanelError as exc:
            logger.warning(
                "bulk_action_item_failed",
                action=action.value,
                entry_id=entry_id,
                project_id=project_id,
                status=exc.status_code,
                error=exc.message,
            )
            self.audit.emit(
                actor,
                f"{action.audit_name}_FAILURE",
                target_collection=source.collection.value,
                target_record=entry_id,
                details={**details, "error": exc.message, "status": exc.status_code},
            )
            return {"id": entry_id, "reason": exc.message, "status": exc.status_code}

        self.audit.emit(
            actor,
            action.audit_name,
            target_collection=source.collection.value,
            target_record=entry_id,
            details=details,
        )
        return None

    async def run(self, action: BulkAction | str, ids: list[str], actor: Actor, project_id: str) -> BulkResult:
        action = BulkAction(action)
        succeeded: list[str] = []
        errors: list[dict[str, Any]] = []
        for entry_id in ids:
            error = await self._run_one(action, entry_id, actor, project_id)
            if error is None:
                succeeded.append(entry_id)
            else:
                errors.append(error)

        status_code = overall_status(len(succeeded), errors)
        suffix = "COMPLETE" if status_code == 200 else "PARTIAL" if status_code == 207 else "FAILURE"
        summary: dict[str, Any] = {
            "bulk_action": action.value,
            "requested_ids": list(ids),
            "project_id": project_id,
            "success_count": len(succeeded),
            "failure_count": len(errors),
        }
        if errors:
            summary["errors"] = errors
        self.audit.emit(actor, f"{action.audit_name}_{suffix}", details=summary)
        logger.info(
            "bulk_action_done",
            action=action.value,
            project_id=project_id,
            succeeded=len(succeeded),
            failed=len(errors),
            status=status_code,
        )
        return BulkResult(action=action, status_code=status_code, succeeded=succeeded, errors=errors)


bulk_action_service = BulkActionService()
