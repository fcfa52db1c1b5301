from docpanel.models.entries import (
    EXPLICIT_ID_LENGTH,
    ROADMAP_STAGES,
    STAGED_FIELDS,
    Collection,
    EntryStatus,
    EntryStore,
    EntryType,
    cleared_staging,
)
from docpanel.models.tracking import ViewDuration, ViewLog

__all__ = [
    "EXPLICIT_ID_LENGTH",
    "ROADMAP_STAGES",
    "STAGED_FIELDS",
    "Collection",
    "EntryStatus",
    "EntryStore",
    "EntryType",
    "ViewDuration",
    "ViewLog",
    "cleared_staging",
]
