"""
DocPanel - Content administration backend
=========================================
Entry lifecycle, preview gate, audit trail and view tracking on top of a
PocketBase record store.

Built with: FastAPI + PocketBase + PostgreSQL + Redis
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from docpanel.api.envelope import docpanel_error_envelope, error_envelope
from docpanel.api.routes.audit_log import router as audit_log_router
from docpanel.api.routes.auth import router as auth_router
from docpanel.api.routes.entries import router as entries_router
from docpanel.api.routes.public import router as public_router
from docpanel.api.routes.settings import router as settings_router
from docpanel.api.routes.system import router as system_router
from docpanel.core import background
from docpanel.core.config import get_settings
from docpanel.core.correlation import (
    CORRELATION_ID_HEADER,
    REQUEST_ID_HEADER,
    bind_request_context,
    clear_request_context,
)
from docpanel.core.database import init_db
from docpanel.core.errors import DocPanelError
from docpanel.core.logging import get_logger, setup_logging
from docpanel.repositories.record_store import record_store
from docpanel.scheduler import start_scheduler, stop_scheduler
from docpanel.schemas import HealthResponse
from docpanel.services.cache_service import cache_service

settings = get_settings()
logger = get_logger("main")

_start_time = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup & shutdown lifecycle."""

    # ── Startup ──
    setup_logging(debug=settings.app_debug)
    logger.info("app_starting", app=settings.app_name, env=settings.app_env)

    await init_db()
    logger.info("database_initialized")

    await cache_service.connect()

    if settings.scheduler_enabled:
        start_scheduler()

    logger.info("app_ready", port=settings.app_port, version=settings.app_version)

    yield

    # ── Shutdown ──
    if settings.scheduler_enabled:
        stop_scheduler()
    await background.drain()
    await record_store.close()
    await cache_service.disconnect()
    logger.info("app_shutdown")


# ── Create FastAPI App ──

app = FastAPI(
    title="DocPanel",
    description=(
        "Content administration backend.\n\n"
        "- Entries: create, stage, publish, archive, duplicate, bulk actions\n"
        "- Previews: time-limited, optionally password-protected draft links\n"
        "- Audit log: append-only record of administrative actions\n"
        "- Public views: de-duplicated view counts, reading time, feedback\n"
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS Middleware ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Context Middleware ──

QUIET_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Bind request/correlation ids and log one line per request."""
    request_id, correlation_id = bind_request_context(
        request.headers.get(REQUEST_ID_HEADER),
        request.headers.get(CORRELATION_ID_HEADER),
    )
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
    finally:
        if request.url.path not in QUIET_PATHS:
            logger.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status=status_code,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        clear_request_context()


# ── Exception Handlers ──

HTTP_ERROR_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


@app.exception_handler(DocPanelError)
async def docpanel_exception_handler(request: Request, exc: DocPanelError):
    log = logger.error if exc.status_code >= 500 else logger.info
    log("request_failed", path=request.url.path, code=exc.code, status_code=exc.status_code, message=exc.message)
    return docpanel_error_envelope(exc)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning("http_exception", path=request.url.path, status_code=exc.status_code, detail=str(exc.detail))
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_envelope(
        code=HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
        message=message,
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = {
        ".".join(str(part) for part in err.get("loc", ()) if part != "body"): err.get("msg", "")
        for err in exc.errors()
    }
    logger.info("request_invalid", path=request.url.path, fields=list(fields))
    return error_envelope(
        code="request_invalid",
        message="The request payload is invalid.",
        status_code=422,
        details={"fields": fields},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
    return error_envelope(code="internal_error", message="Internal server error", status_code=500)


# ── Register Routers ──

API_PREFIX = "/api/v1"

for admin_router in (auth_router, entries_router, audit_log_router, settings_router, system_router):
    app.include_router(admin_router, prefix=API_PREFIX)
app.include_router(public_router)


# ── Health Check ──

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """System health check endpoint."""
    uptime = round(time.time() - _start_time, 2)
    return HealthResponse(
        status="ok",
        version=settings.app_version,
        record_store="authenticated" if record_store.auth_valid else "idle",
        redis="connected" if cache_service.connected else "disconnected",
        uptime_seconds=uptime,
    )
