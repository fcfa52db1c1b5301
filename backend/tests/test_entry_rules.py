from __future__ import annotations

from docpanel.domain.entries import (
    EntrySubmission,
    UpdateMode,
    build_archive_payload,
    build_create_payload,
    build_publish_staged_patch,
    build_unarchive_payload,
    editable_view,
    plan_update,
    rendered_fields,
    staging_invariants_hold,
    validate_create,
    validate_duplicate,
)
from docpanel.models import STAGED_FIELDS


def _published(**fields) -> dict:
    record = {
        "id": "abcdefghijklmno",
        "title": "Live title",
        "type": "documentation",
        "content": "live body",
        "status": "published",
        "tags": "a,b",
        "collection": "Guides",
        "has_staged_changes": False,
    }
    record.update(fields)
    return record


def test_validate_create_requires_exact_id_length() -> None:
    sub = EntrySubmission.from_mapping({"title": "T", "type": "documentation", "content": "x", "url": "short"})
    errors = validate_create(sub)
    assert "url" in errors


def test_validate_create_knowledge_base_needs_answer() -> None:
    sub = EntrySubmission.from_mapping({"title": "Q", "type": "knowledge_base", "content": "  "})
    assert validate_create(sub)["content"] == "Answer content is required."


def test_validate_create_roadmap_stage_rules() -> None:
    missing = EntrySubmission.from_mapping({"title": "R", "type": "roadmap"})
    wrong = EntrySubmission.from_mapping({"title": "R", "type": "roadmap", "roadmap_stage": "Someday"})
    assert validate_create(missing)["roadmap_stage"] == "Roadmap Stage is required."
    assert validate_create(wrong)["roadmap_stage"] == "Invalid roadmap stage selection."
    assert "content" not in validate_create(missing)


def test_validate_duplicate_only_checks_title_and_content() -> None:
    sub = EntrySubmission.from_mapping({"title": "", "type": "documentation", "content": "body"})
    assert set(validate_duplicate(sub)) == {"title"}


def test_create_payload_for_sidebar_header_is_forced_published() -> None:
    sub = EntrySubmission.from_mapping(
        {"title": "Section", "type": "sidebar_header", "content": "ignored", "tags": "x", "status": "draft"}
    )
    payload = build_create_payload(sub, owner_id="u1", project_id="p1")
    assert payload["status"] == "published"
    assert payload["content"] == ""
    assert payload["tags"] == ""
    assert payload["show_in_project_sidebar"] is True
    assert payload["has_staged_changes"] is False
    assert "id" not in payload


def test_create_payload_uses_explicit_id() -> None:
    sub = EntrySubmission.from_mapping({"title": "T", "type": "changelog", "content": "x", "url": " abcdefghijklmno "})
    assert build_create_payload(sub, owner_id="u1", project_id="p1")["id"] == "abcdefghijklmno"


def test_plan_update_stages_when_published_stays_published() -> None:
    current = _published()
    sub = EntrySubmission.from_mapping({**current, "content": "next body", "collection": "Other"})
    plan = plan_update(current, sub)

    assert plan.mode is UpdateMode.STAGE
    assert plan.action == "ENTRY_STAGE_CHANGES"
    assert plan.patch["staged_content"] == "next body"
    assert plan.patch["staged_collection"] is None
    assert plan.patch["collection"] == "Other"
    assert plan.patch["has_staged_changes"] is True
    assert "content" not in plan.patch
    assert "status" not in plan.patch


def test_plan_update_unpublish_clears_staging() -> None:
    current = _published(has_staged_changes=True, staged_content="pending")
    sub = EntrySubmission.from_mapping({**current, "status": "draft"})
    plan = plan_update(current, sub)

    assert plan.mode is UpdateMode.DIRECT
    assert plan.action == "ENTRY_UNPUBLISH"
    assert plan.patch["status"] == "draft"
    assert all(plan.patch[staged] is None for staged in STAGED_FIELDS.values())
    assert plan.patch["has_staged_changes"] is False


def test_plan_update_draft_sidebar_header_publishes() -> None:
    current = {"id": "x", "type": "sidebar_header", "status": "draft", "title": "H"}
    sub = EntrySubmission.from_mapping({"title": "H", "type": "sidebar_header", "status": "draft"})
    plan = plan_update(current, sub)
    assert plan.patch["status"] == "published"
    assert plan.action == "ENTRY_PUBLISH"


def test_publish_staged_patch_copies_nulls_and_keeps_collection() -> None:
    record = _published(has_staged_changes=True, staged_title="New", staged_content="new body", staged_tags=None)
    patch = build_publish_staged_patch(record)
    assert patch["title"] == "New"
    assert patch["content"] == "new body"
    assert patch["tags"] is None
    assert "collection" not in patch
    assert patch["has_staged_changes"] is False
    assert patch["staged_content"] is None


def test_archive_and_unarchive_payloads_carry_original_id() -> None:
    record = _published(collectionId="c1", collectionName="entries_main", created="x", updated="y")
    archived = build_archive_payload(record)
    assert archived["original_id"] == record["id"]
    assert "id" not in archived
    assert "collectionId" not in archived

    restored = build_unarchive_payload({**archived, "id": "archived0000001"})
    assert restored["id"] == record["id"]
    assert "original_id" not in restored


def test_editable_and_rendered_views_prefer_staged_values() -> None:
    record = _published(has_staged_changes=True, staged_title="Pending", staged_content=None)
    view = editable_view(record)
    assert view["title"] == "Pending"
    assert view["content"] == "live body"
    assert view["is_editing_staged"] is True

    rendered = rendered_fields(record)
    assert rendered["title"] == "Pending"
    assert rendered["content"] == "live body"


def test_staging_invariants() -> None:
    assert staging_invariants_hold(_published())
    assert staging_invariants_hold(_published(has_staged_changes=True, staged_title="x"))
    assert not staging_invariants_hold({"status": "draft", "has_staged_changes": True})
    assert not staging_invariants_hold({"status": "draft", "staged_title": "left over"})
