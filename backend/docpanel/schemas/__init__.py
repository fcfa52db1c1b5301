"""
DocPanel - Pydantic Schemas
===========================
Request/Response schemas for the API layer.
"""

from typing import Optional

from pydantic import BaseModel, Field

from docpanel.services.bulk_service import BulkAction


# ── Entry Schemas ──

class EntryForm(BaseModel):
    """Editor form payload. Only the keys actually sent are applied on update."""
    title: Optional[str] = None
    type: Optional[str] = None
    content: Optional[str] = None
    status: Optional[str] = None
    tags: Optional[str] = None
    collection: Optional[str] = None
    custom_header: Optional[str] = None
    custom_footer: Optional[str] = None
    show_in_project_sidebar: Optional[bool] = None
    roadmap_stage: Optional[str] = None
    url: Optional[str] = Field(None, max_length=64)


class BulkActionRequest(BaseModel):
    action: BulkAction
    ids: list[str] = Field(..., min_length=1)


class PreviewRequest(BaseModel):
    password: Optional[str] = Field(None, max_length=256)
    expiry_hours: Optional[int] = Field(None, ge=1, le=24 * 30)


# ── Public Schemas ──

class PasswordSubmit(BaseModel):
    password: Optional[str] = None


class DurationSubmit(BaseModel):
    seconds: int


class FeedbackSubmit(BaseModel):
    helpful: bool


# ── Auth Schemas ──

class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str


# ── App Settings Schemas ──

class AppSettingsUpdate(BaseModel):
    """Flags left out of the request keep their stored value."""

    enable_global_search: Optional[bool] = None
    enable_audit_log: Optional[bool] = None
    enable_project_view_tracking_default: Optional[bool] = None
    enable_project_time_tracking_default: Optional[bool] = None
    enable_project_full_width_default: Optional[bool] = None


# ── System Schemas ──

class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    record_store: str = "connected"
    redis: str = "connected"
    uptime_seconds: float = 0
