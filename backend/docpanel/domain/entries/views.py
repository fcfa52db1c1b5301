"""Read-side projections of an entry: edit form values, rendered fields and the staged diff."""

from __future__ import annotations

import difflib
from typing import Any

from docpanel.models import STAGED_FIELDS, EntryStatus

FORM_FIELDS = (
    "title",
    "type",
    "content",
    "status",
    "tags",
    "collection",
    "custom_header",
    "custom_footer",
    "show_in_project_sidebar",
    "roadmap_stage",
)


def is_staged(record: dict[str, Any]) -> bool:
    return record.get("status") == EntryStatus.PUBLISHED.value and bool(record.get("has_staged_changes"))


def _staged_or_live(record: dict[str, Any], field: str) -> Any:
    staged = record.get(STAGED_FIELDS[field])
    return record.get(field) if staged is None else staged


def editable_view(record: dict[str, Any]) -> dict[str, Any]:
    """Values an editor should see in the form. Pending staged values win over live ones."""
    view = {field: record.get(field) for field in FORM_FIELDS}
    if is_staged(record):
        for field in STAGED_FIELDS:
            if field == "collection":
                continue
            view[field] = _staged_or_live(record, field)
    view["id"] = record.get("id")
    view["has_staged_changes"] = bool(record.get("has_staged_changes"))
    view["is_editing_staged"] = is_staged(record)
    return view


def rendered_fields(record: dict[str, Any]) -> dict[str, Any]:
    """The single authoritative field set for rendering."""
    fields = {field: record.get(field) for field in STAGED_FIELDS}
    if is_staged(record):
        fields = {field: _staged_or_live(record, field) for field in STAGED_FIELDS}
    fields.update(
        {
            "id": record.get("id"),
            "status": record.get("status"),
            "project": record.get("project"),
            "views": record.get("views") or 0,
            "content_updated_at": record.get("content_updated_at"),
            "updated": record.get("updated"),
            "helpful_yes": record.get("helpful_yes") or 0,
            "helpful_no": record.get("helpful_no") or 0,
        }
    )
    return fields


def content_diff(record: dict[str, Any]) -> dict[str, Any]:
    live = record.get("content") or ""
    staged = _staged_or_live(record, "content") or ""
    diff = difflib.unified_diff(
        live.splitlines(),
        staged.splitlines(),
        fromfile="published",
        tofile="staged",
        lineterm="",
    )
    changed = {
        field: {"published": record.get(field), "staged": record.get(STAGED_FIELDS[field])}
        for field in STAGED_FIELDS
        if field != "collection"
        and record.get(STAGED_FIELDS[field]) is not None
        and record.get(STAGED_FIELDS[field]) != record.get(field)
    }
    return {
        "entry_id": record.get("id"),
        "title": record.get("title"),
        "published_content": live,
        "staged_content": staged,
        "diff": "\n".join(diff),
        "changed_fields": changed,
    }
