"""JSON response envelope: {ok, data, error, meta}.

Every admin and public route answers through these helpers so clients can
branch on ``ok`` and read ``meta.request_id`` for support tickets.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi.responses import JSONResponse

from docpanel.core.correlation import get_correlation_id, get_request_id
from docpanel.core.errors import DocPanelError


def response_meta(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "request_id": get_request_id() or None,
        "correlation_id": get_correlation_id() or None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **(extra or {}),
    }


def _envelope(status_code: int, *, data: Any, error: dict[str, Any] | None, meta: dict[str, Any] | None) -> JSONResponse:
    body = {"ok": error is None, "data": data, "error": error, "meta": response_meta(meta)}
    return JSONResponse(status_code=status_code, content=body)


def page_meta(result: dict[str, Any]) -> dict[str, Any]:
    """Pagination fields of a record store list response."""
    return {
        "page": result.get("page", 1),
        "per_page": result.get("perPage"),
        "total_items": result.get("totalItems", 0),
        "total_pages": result.get("totalPages", 0),
    }


def success_envelope(data: Any, *, status_code: int = 200, meta: dict[str, Any] | None = None) -> JSONResponse:
    return _envelope(status_code, data=data, error=None, meta=meta)


def paged_envelope(result: dict[str, Any]) -> JSONResponse:
    return success_envelope(result.get("items") or [], meta=page_meta(result))


def error_envelope(
    *,
    code: str,
    message: str,
    status_code: int = 400,
    details: Any = None,
    meta: dict[str, Any] | None = None,
) -> JSONResponse:
    error = {"code": code, "message": message, "details": details}
    return _envelope(status_code, data=None, error=error, meta=meta)


def docpanel_error_envelope(exc: DocPanelError) -> JSONResponse:
    return error_envelope(code=exc.code, message=exc.message, status_code=exc.status_code, details=exc.details)
