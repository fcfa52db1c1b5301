"""
DocPanel - Entry vocabulary
===========================
Record store collections, entry kinds and the live/staged field pairs.
Entries themselves are plain dicts returned by the record store.
"""

import enum


class Collection(str, enum.Enum):
    ENTRIES = "entries_main"
    ENTRIES_ARCHIVED = "entries_archived"
    PREVIEWS = "entries_previews"
    AUDIT_LOGS = "audit_logs"
    APP_SETTINGS = "app_settings"
    PROJECTS = "projects"
    USERS = "users"


class EntryStore(str, enum.Enum):
    """Where an entry currently lives."""
    LIVE = "live"
    ARCHIVED = "archived"

    @property
    def collection(self) -> Collection:
        return _STORE_COLLECTIONS[self]


_STORE_COLLECTIONS = {
    EntryStore.LIVE: Collection.ENTRIES,
    EntryStore.ARCHIVED: Collection.ENTRIES_ARCHIVED,
}


class EntryType(str, enum.Enum):
    DOCUMENTATION = "documentation"
    CHANGELOG = "changelog"
    ROADMAP = "roadmap"
    KNOWLEDGE_BASE = "knowledge_base"
    SIDEBAR_HEADER = "sidebar_header"


class EntryStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


ROADMAP_STAGES = ("Planned", "Next Up", "In Progress", "Done")

EXPLICIT_ID_LENGTH = 15

# live field -> staged shadow field
STAGED_FIELDS: dict[str, str] = {
    "title": "staged_title",
    "type": "staged_type",
    "content": "staged_content",
    "tags": "staged_tags",
    "collection": "staged_collection",
    "custom_header": "staged_header",
    "custom_footer": "staged_footer",
    "roadmap_stage": "staged_roadmap_stage",
}


def cleared_staging() -> dict:
    """Patch that drops every staged value."""
    patch = {staged: None for staged in STAGED_FIELDS.values()}
    patch["has_staged_changes"] = False
    return patch
