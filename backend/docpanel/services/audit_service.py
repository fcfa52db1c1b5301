"""
DocPanel - Audit Recorder
=========================
Append-only log of administrative actions written to the `audit_logs`
collection. Writes are gated by the `enable_audit_log` flag and never
raise into the caller.
"""

from __future__ import annotations

import csv
import enum
import io
import json
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from fastapi import Request

from docpanel.core.background import fire_and_forget
from docpanel.core.correlation import get_correlation_id, get_request_id
from docpanel.core.errors import RecordStoreError, from_store_error
from docpanel.core.logging import get_logger
from docpanel.models import Collection
from docpanel.repositories.record_store import RecordStore, record_store
from docpanel.services.app_settings_service import AppSettingsService, app_settings_service

logger = get_logger("services.audit")

CLEAR_BATCH_SIZE = 200

CSV_COLUMNS = ["Timestamp", "User", "Action", "TargetCollection", "TargetRecord", "IPAddress", "Details", "LogID"]

# System events legitimately written without a user.
USERLESS_ACTIONS = frozenset(
    {
        "SYSTEM_ADMIN_AUTH",
        "PREVIEW_PASSWORD_SUCCESS",
        "PREVIEW_PASSWORD_FAILURE",
        "PROJECT_PASSWORD_SUCCESS",
        "PROJECT_PASSWORD_FAILURE",
        "USER_LOGIN",
        "USER_LOGIN_FAILURE",
    }
)

REDACTED_KEYS = ("password", "token", "secret", "access_password")


@dataclass(slots=True)
class Actor:
    """Who is acting and from where."""
    user_id: str | None = None
    ip: str | None = None

    @classmethod
    def system(cls) -> "Actor":
        return cls()


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


def _redact_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in REDACTED_KEYS)


def sanitize_details(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            str(k): ("[redacted]" if _redact_key(str(k)) and isinstance(v, str) else sanitize_details(v))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set)):
        return [sanitize_details(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class AuditService:
    def __init__(self, store: RecordStore | None = None, app_settings: AppSettingsService | None = None):
        self.store = store or record_store
        self.app_settings = app_settings or app_settings_service

    async def record(
        self,
        actor: Actor | None,
        action: str,
        *,
        target_collection: str | None = None,
        target_record: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> bool:
        """Write one audit row. Returns False when skipped or failed."""
        actor = actor or Actor.system()
        try:
            if not await self.app_settings.is_enabled("enable_audit_log"):
                return False
        except Exception as exc:  # noqa: BLE001
            logger.warning("audit_flag_check_failed", action=action, error=str(exc))

        if not actor.user_id and action not in USERLESS_ACTIONS:
            logger.warning("audit_missing_user", action=action)

        payload_details = sanitize_details(details or {})
        request_id = get_request_id()
        if request_id:
            payload_details = {**payload_details, "request_id": request_id, "correlation_id": get_correlation_id()}

        try:
            await self.store.create(
                Collection.AUDIT_LOGS.value,
                {
                    "user": actor.user_id,
                    "action": action,
                    "target_collection": target_collection,
                    "target_record": target_record,
                    "ip_address": actor.ip,
                    "details": payload_details or None,
                },
            )
            return True
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "audit_log_failed",
                action=action,
                target_collection=target_collection,
                target_record=target_record,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return False

    def emit(
        self,
        actor: Actor | None,
        action: str,
        *,
        target_collection: str | None = None,
        target_record: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Detached variant of `record`: the caller never waits on the audit write."""
        fire_and_forget(
            self.record(
                actor,
                action,
                target_collection=target_collection,
                target_record=target_record,
                details=details,
            ),
            name=f"audit:{action}",
        )

    # ── Administrative read side ──

    async def list_logs(self, *, page: int = 1, per_page: int = 10, sort: str | None = None) -> dict[str, Any]:
        try:
            return await self.store.list(
                Collection.AUDIT_LOGS.value,
                page=page,
                per_page=per_page,
                sort=sort or "-created",
            )
        except RecordStoreError as exc:
            raise from_store_error(exc, operation="audit_list") from exc

    async def clear_all(self, actor: Actor) -> int:
        await self.record(actor, "AUDIT_LOG_CLEAR_STARTED")
        deleted = 0
        try:
            while True:
                batch = await self.store.list(
                    Collection.AUDIT_LOGS.value,
                    page=1,
                    per_page=CLEAR_BATCH_SIZE,
                    sort="created",
                    fields="id",
                )
                items = batch.get("items") or []
                for item in items:
                    await self.store.delete(Collection.AUDIT_LOGS.value, item["id"])
                    deleted += 1
                if len(items) < CLEAR_BATCH_SIZE:
                    break
        except RecordStoreError as exc:
            await self.record(
                actor,
                "AUDIT_LOG_CLEAR_FAILURE",
                details={"error": exc.message, "deleted_before_error": deleted},
            )
            raise from_store_error(exc, operation="audit_clear", deleted=deleted) from exc

        logger.info("audit_log_cleared", deleted=deleted, user_id=actor.user_id)
        await self.record(actor, "AUDIT_LOG_CLEAR_SUCCESS", details={"deleted_count": deleted})
        return deleted

    async def _all_logs(self) -> list[dict[str, Any]]:
        try:
            return await self.store.list_all(Collection.AUDIT_LOGS.value, sort="-created")
        except RecordStoreError as exc:
            raise from_store_error(exc, operation="audit_export") from exc

    async def export_csv(self, actor: Actor) -> tuple[str, int]:
        self.emit(actor, "AUDIT_LOG_EXPORT_STARTED", details={"format": "csv"})
        logs = await self._all_logs()
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for log in logs:
            details = log.get("details")
            writer.writerow(
                {
                    "Timestamp": log.get("created") or "",
                    "User": log.get("user") or "System/Unknown",
                    "Action": log.get("action") or "",
                    "TargetCollection": log.get("target_collection") or "",
                    "TargetRecord": log.get("target_record") or "",
                    "IPAddress": log.get("ip_address") or "",
                    "Details": json.dumps(details, ensure_ascii=False) if details else "",
                    "LogID": log.get("id") or "",
                }
            )
        self.emit(actor, "AUDIT_LOG_EXPORT_SUCCESS", details={"format": "csv", "record_count": len(logs)})
        return buffer.getvalue(), len(logs)

    async def export_json(self, actor: Actor) -> list[dict[str, Any]]:
        self.emit(actor, "AUDIT_LOG_EXPORT_STARTED", details={"format": "json"})
        logs = await self._all_logs()
        self.emit(actor, "AUDIT_LOG_EXPORT_SUCCESS", details={"format": "json", "record_count": len(logs)})
        return logs


audit_service = AuditService()
