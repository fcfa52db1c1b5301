"""Per-request identifiers shared by logs, audit rows and response envelopes."""

from __future__ import annotations

import secrets
from contextvars import ContextVar

import structlog

REQUEST_ID_HEADER = "x-request-id"
CORRELATION_ID_HEADER = "x-correlation-id"

_request_id: ContextVar[str] = ContextVar("docpanel_request_id", default="")
_correlation_id: ContextVar[str] = ContextVar("docpanel_correlation_id", default="")


def _new_id(prefix: str) -> str:
    return f"{prefix}_{secrets.token_hex(8)}"


def bind_request_context(request_id: str | None = None, correlation_id: str | None = None) -> tuple[str, str]:
    """Set both ids for the current task, generating the missing ones.

    A caller-supplied correlation id is kept so a chain of requests can be
    followed across services; the request id is always local.
    """
    rid = request_id or _new_id("req")
    cid = correlation_id or _new_id("corr")
    _request_id.set(rid)
    _correlation_id.set(cid)
    structlog.contextvars.bind_contextvars(request_id=rid, correlation_id=cid)
    return rid, cid


def clear_request_context() -> None:
    _request_id.set("")
    _correlation_id.set("")
    structlog.contextvars.clear_contextvars()


def get_request_id() -> str:
    return _request_id.get()


def get_correlation_id() -> str:
    return _correlation_id.get()
