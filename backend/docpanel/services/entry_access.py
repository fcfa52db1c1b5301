from __future__ import annotations

from typing import Any

from docpanel.core.errors import Forbidden, RecordStoreError, from_store_error
from docpanel.core.logging import get_logger
from docpanel.models import EntryStore
from docpanel.repositories.record_store import RecordStore

logger = get_logger("services.entry_access")


async def load_entry(store: RecordStore, where: EntryStore, entry_id: str) -> dict[str, Any]:
    try:
        return await store.get(where.collection.value, entry_id)
    except RecordStoreError as exc:
        raise from_store_error(exc, operation="entry_load", entry_id=entry_id, store=where.value) from exc


def assert_owner(record: dict[str, Any], owner_id: str, project_id: str | None = None) -> None:
    if record.get("owner") != owner_id or (project_id is not None and record.get("project") != project_id):
        logger.warning(
            "entry_access_forbidden",
            entry_id=record.get("id"),
            owner_id=owner_id,
            project_id=project_id,
        )
        raise Forbidden()


async def get_entry_for_owner(
    store: RecordStore,
    where: EntryStore,
    entry_id: str,
    owner_id: str,
    project_id: str | None = None,
) -> dict[str, Any]:
    record = await load_entry(store, where, entry_id)
    assert_owner(record, owner_id, project_id)
    return record
