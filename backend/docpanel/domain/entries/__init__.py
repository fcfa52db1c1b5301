from docpanel.domain.entries.rules import (
    EntrySubmission,
    UpdateMode,
    UpdatePlan,
    build_archive_payload,
    build_create_payload,
    build_duplicate_payload,
    build_publish_staged_patch,
    build_unarchive_payload,
    can_publish_staged,
    plan_update,
    staging_invariants_hold,
    validate_create,
    validate_duplicate,
    validate_update,
)
from docpanel.domain.entries.views import content_diff, editable_view, is_staged, rendered_fields

__all__ = [
    "EntrySubmission",
    "UpdateMode",
    "UpdatePlan",
    "build_archive_payload",
    "build_create_payload",
    "build_duplicate_payload",
    "build_publish_staged_patch",
    "build_unarchive_payload",
    "can_publish_staged",
    "content_diff",
    "editable_view",
    "is_staged",
    "plan_update",
    "rendered_fields",
    "staging_invariants_hold",
    "validate_create",
    "validate_duplicate",
    "validate_update",
]
