"""
DocPanel - Error Taxonomy
=========================
Closed set of failures raised by services and rendered by the API layer.
Best-effort side effects never raise these; they log and move on.
"""

from __future__ import annotations

from typing import Any

from docpanel.core.logging import get_logger

logger = get_logger("errors")


class DocPanelError(Exception):
    code = "error"
    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationFailed(DocPanelError):
    code = "validation_failed"
    status_code = 400
    default_message = "Validation failed"

    def __init__(
        self,
        fields: dict[str, str],
        *,
        submitted: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        self.fields = dict(fields)
        self.submitted = dict(submitted or {})
        first = message or next(iter(self.fields.values()), None)
        super().__init__(first, details={"fields": self.fields, "submitted": self.submitted})


class InvalidState(DocPanelError):
    code = "invalid_state"
    status_code = 400
    default_message = "Operation not allowed in the current state"


class Forbidden(DocPanelError):
    code = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class NotFound(DocPanelError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class Conflict(DocPanelError):
    code = "conflict"
    status_code = 409
    default_message = "The record already exists or was changed concurrently."


class IdConflict(Conflict):
    code = "url_in_use"
    default_message = "This URL (ID) is already in use. Please choose another."


class UnarchiveConflict(Conflict):
    code = "unarchive_conflict"
    default_message = "An entry with the original ID already exists. Cannot unarchive."


class BackendUnavailable(DocPanelError):
    code = "backend_unavailable"
    status_code = 500
    default_message = "Unexpected backend failure"


class RecordStoreError(Exception):
    """Raised by the record store client for any non-2xx response or transport failure."""

    def __init__(self, status: int, message: str = "", data: dict[str, Any] | None = None):
        self.status = int(status or 0)
        self.message = message or f"record store returned {self.status}"
        self.data = data or {}
        super().__init__(self.message)

    def field_error(self, field: str) -> dict[str, Any] | None:
        value = self.data.get(field)
        return value if isinstance(value, dict) else None

    @property
    def is_auth_error(self) -> bool:
        return self.status in (401, 403)

    @property
    def is_conflict(self) -> bool:
        """A create collided with an existing id (PocketBase answers 400 with an id field error)."""
        if self.status not in (400, 409):
            return False
        return self.status == 409 or bool(self.field_error("id")) or "already exists" in self.message.lower()

    def field_messages(self) -> dict[str, str]:
        return {
            name: str(err.get("message") or "Invalid value.")
            for name, err in self.data.items()
            if isinstance(err, dict)
        }


def from_store_error(exc: RecordStoreError, *, operation: str, **context: Any) -> DocPanelError:
    """Translate a record store failure into the service taxonomy."""
    if exc.status == 403:
        return Forbidden()
    if exc.status == 404:
        return NotFound()
    if exc.is_conflict:
        logger.warning("record_store_conflict", operation=operation, error=exc.message, **context)
        return Conflict()
    if exc.status == 400:
        fields = exc.field_messages()
        logger.warning("record_store_rejected", operation=operation, error=exc.message, fields=list(fields), **context)
        return ValidationFailed(fields, message=None if fields else exc.message)
    logger.error(
        "record_store_failure",
        operation=operation,
        status=exc.status,
        error=exc.message,
        data=exc.data,
        **context,
    )
    return BackendUnavailable()
