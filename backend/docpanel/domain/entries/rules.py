"""Pure lifecycle rules for entries: validation and the write payloads for each transition."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from docpanel.models import (
    EXPLICIT_ID_LENGTH,
    ROADMAP_STAGES,
    STAGED_FIELDS,
    EntryStatus,
    EntryType,
    cleared_staging,
)

# Fields the store manages itself; never copied between collections.
SYSTEM_FIELDS = ("id", "collectionId", "collectionName", "created", "updated", "expand", "files")

# Live fields overwritten by publish-staged. Collection is never staged.
PUBLISHED_FROM_STAGED = tuple(field for field in STAGED_FIELDS if field != "collection")


class UpdateMode(str, enum.Enum):
    STAGE = "stage"
    DIRECT = "direct"


@dataclass(slots=True)
class UpdatePlan:
    mode: UpdateMode
    action: str
    patch: dict[str, Any]


@dataclass(slots=True)
class EntrySubmission:
    title: str = ""
    type: str = ""
    content: str = ""
    status: str = EntryStatus.DRAFT.value
    tags: str = ""
    collection: str = ""
    custom_header: str | None = None
    custom_footer: str | None = None
    show_in_project_sidebar: bool = False
    roadmap_stage: str | None = None
    url: str = ""

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "EntrySubmission":
        sidebar = data.get("show_in_project_sidebar")
        if isinstance(sidebar, str):
            sidebar = sidebar.strip().lower() in ("true", "1", "on", "yes")
        return cls(
            title=(data.get("title") or "").strip(),
            type=(data.get("type") or "").strip(),
            content=data.get("content") or "",
            status=(data.get("status") or EntryStatus.DRAFT.value).strip(),
            tags=data.get("tags") or "",
            collection=data.get("collection") or "",
            custom_header=data.get("custom_header") or None,
            custom_footer=data.get("custom_footer") or None,
            show_in_project_sidebar=bool(sidebar),
            roadmap_stage=(data.get("roadmap_stage") or "").strip() or None,
            url=(data.get("url") or data.get("id") or "").strip(),
        )

    @property
    def is_sidebar_header(self) -> bool:
        return self.type == EntryType.SIDEBAR_HEADER.value

    @property
    def is_roadmap(self) -> bool:
        return self.type == EntryType.ROADMAP.value

    def as_form(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "type": self.type,
            "content": self.content,
            "status": self.status,
            "tags": self.tags,
            "collection": self.collection,
            "custom_header": self.custom_header or "",
            "custom_footer": self.custom_footer or "",
            "show_in_project_sidebar": self.show_in_project_sidebar,
            "roadmap_stage": self.roadmap_stage or "",
            "url": self.url,
        }


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_content_fields(sub: EntrySubmission) -> dict[str, str]:
    """Checks shared by create, update and duplicate."""
    errors: dict[str, str] = {}
    no_body_types = (
        EntryType.ROADMAP.value,
        EntryType.KNOWLEDGE_BASE.value,
        EntryType.SIDEBAR_HEADER.value,
    )
    if sub.type not in no_body_types and not sub.content.strip():
        errors["content"] = "Content is required."
    if sub.type == EntryType.KNOWLEDGE_BASE.value and not sub.content.strip():
        errors["content"] = "Answer content is required."
    if sub.is_roadmap:
        if not sub.roadmap_stage:
            errors["roadmap_stage"] = "Roadmap Stage is required."
        elif sub.roadmap_stage not in ROADMAP_STAGES:
            errors["roadmap_stage"] = "Invalid roadmap stage selection."
    return errors


def validate_create(sub: EntrySubmission) -> dict[str, str]:
    errors: dict[str, str] = {}
    if sub.url and len(sub.url) != EXPLICIT_ID_LENGTH:
        errors["url"] = f"URL (ID) must be exactly {EXPLICIT_ID_LENGTH} characters long if provided."
    if not sub.title:
        errors["title"] = "Title is required."
    if not sub.type:
        errors["type"] = "Type is required."
    elif sub.type not in {t.value for t in EntryType}:
        errors["type"] = "Invalid entry type."
    if sub.status not in {s.value for s in EntryStatus}:
        errors["status"] = "Invalid status."
    errors.update(validate_content_fields(sub))
    return errors


def validate_update(sub: EntrySubmission) -> dict[str, str]:
    errors = validate_content_fields(sub)
    if sub.type and sub.type not in {t.value for t in EntryType}:
        errors["type"] = "Invalid entry type."
    if sub.status not in {s.value for s in EntryStatus}:
        errors["status"] = "Invalid status."
    return errors


def validate_duplicate(sub: EntrySubmission) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not sub.title:
        errors["title"] = "Title is required."
    errors.update(validate_content_fields(sub))
    return errors


def _live_values(sub: EntrySubmission) -> dict[str, Any]:
    header = sub.is_sidebar_header
    return {
        "title": sub.title,
        "type": sub.type,
        "content": "" if header else sub.content,
        "tags": "" if header else sub.tags,
        "collection": "" if header else sub.collection,
        "custom_header": sub.custom_header,
        "custom_footer": sub.custom_footer,
        "roadmap_stage": sub.roadmap_stage if sub.is_roadmap else None,
        "show_in_project_sidebar": True if header else sub.show_in_project_sidebar,
    }


def build_create_payload(sub: EntrySubmission, *, owner_id: str, project_id: str | None) -> dict[str, Any]:
    payload = _live_values(sub)
    payload.update(cleared_staging())
    payload.update(
        {
            "status": EntryStatus.PUBLISHED.value if sub.is_sidebar_header else sub.status,
            "views": 0,
            "owner": owner_id,
            "project": project_id,
            "content_updated_at": utc_now_iso(),
        }
    )
    if sub.url and len(sub.url) == EXPLICIT_ID_LENGTH:
        payload["id"] = sub.url
    return payload


def plan_update(current: dict[str, Any], sub: EntrySubmission) -> UpdatePlan:
    """Decide between staging and a direct write from current vs submitted status."""
    was_published = current.get("status") == EntryStatus.PUBLISHED.value
    stays_published = sub.status == EntryStatus.PUBLISHED.value
    live = _live_values(sub)

    if was_published and stays_published:
        patch = {STAGED_FIELDS[field]: live[field] for field in PUBLISHED_FROM_STAGED}
        patch["staged_collection"] = None
        patch["has_staged_changes"] = True
        patch["collection"] = live["collection"]
        patch["show_in_project_sidebar"] = live["show_in_project_sidebar"]
        return UpdatePlan(mode=UpdateMode.STAGE, action="ENTRY_STAGE_CHANGES", patch=patch)

    effective_status = EntryStatus.PUBLISHED.value if sub.is_sidebar_header else sub.status
    patch = dict(live)
    patch.update(cleared_staging())
    patch["status"] = effective_status
    patch["content_updated_at"] = utc_now_iso()

    action = "ENTRY_UPDATE"
    if was_published and effective_status == EntryStatus.DRAFT.value:
        action = "ENTRY_UNPUBLISH"
    elif not was_published and effective_status == EntryStatus.PUBLISHED.value:
        action = "ENTRY_PUBLISH"
    return UpdatePlan(mode=UpdateMode.DIRECT, action=action, patch=patch)


def can_publish_staged(record: dict[str, Any]) -> bool:
    return record.get("status") == EntryStatus.PUBLISHED.value and bool(record.get("has_staged_changes"))


def build_publish_staged_patch(record: dict[str, Any]) -> dict[str, Any]:
    """Copy every staged value over its live field, nulls included."""
    patch = {field: record.get(STAGED_FIELDS[field]) for field in PUBLISHED_FROM_STAGED}
    patch.update(cleared_staging())
    return patch


def strip_system_fields(record: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in record.items() if key not in SYSTEM_FIELDS}


def build_archive_payload(record: dict[str, Any]) -> dict[str, Any]:
    payload = strip_system_fields(record)
    payload["original_id"] = record["id"]
    payload["custom_header"] = record.get("custom_header") or None
    payload["custom_footer"] = record.get("custom_footer") or None
    payload["roadmap_stage"] = record.get("roadmap_stage") or None
    payload.update(cleared_staging())
    return payload


def build_unarchive_payload(archived: dict[str, Any]) -> dict[str, Any]:
    payload = strip_system_fields(archived)
    payload.pop("original_id", None)
    payload["id"] = archived.get("original_id") or archived["id"]
    payload["custom_header"] = archived.get("custom_header") or None
    payload["custom_footer"] = archived.get("custom_footer") or None
    payload["roadmap_stage"] = archived.get("roadmap_stage") or None
    payload.update(cleared_staging())
    return payload


def build_duplicate_payload(sub: EntrySubmission, *, owner_id: str, project_id: str | None) -> dict[str, Any]:
    payload = _live_values(sub)
    payload.update(cleared_staging())
    payload.update(
        {
            "title": f"Copy of {sub.title}",
            "status": EntryStatus.DRAFT.value,
            "views": 0,
            "owner": owner_id,
            "project": project_id,
            "content_updated_at": utc_now_iso(),
        }
    )
    return payload


def staging_invariants_hold(record: dict[str, Any]) -> bool:
    """has_staged_changes implies published; no staged values without staging."""
    if record.get("has_staged_changes"):
        return record.get("status") == EntryStatus.PUBLISHED.value
    return all(record.get(staged) is None for staged in STAGED_FIELDS.values())
