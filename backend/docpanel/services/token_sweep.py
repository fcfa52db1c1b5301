"""
DocPanel - Preview Token Sweep
==============================
Hourly purge of preview tokens whose entry no longer exists (orphans) and
tokens past their expiry. Pages are walked from the last to the first so
deletions never shift a page that has not been visited yet; a failed batch
is logged and the walk continues.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from docpanel.core.config import get_settings
from docpanel.core.errors import RecordStoreError
from docpanel.core.logging import get_logger
from docpanel.models import Collection
from docpanel.repositories import filters
from docpanel.repositories.record_store import RecordStore, record_store

logger = get_logger("services.token_sweep")
settings = get_settings()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenSweepService:
    def __init__(
        self,
        store: RecordStore | None = None,
        *,
        batch_size: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store or record_store
        self.batch_size = batch_size or settings.sweep_batch_size
        self.clock = clock

    def _handle_pass_error(self, pass_name: str, exc: RecordStoreError) -> None:
        logger.error("token_sweep_pass_failed", sweep_pass=pass_name, status=exc.status, error=exc.message)
        if exc.is_auth_error:
            logger.warning("token_sweep_forcing_reauth", sweep_pass=pass_name)
            self.store.invalidate_auth()

    async def _delete_batch(self, pass_name: str, page: int, ids: list[str]) -> int:
        deleted = 0
        for token_id in ids:
            try:
                await self.store.delete(Collection.PREVIEWS.value, token_id)
                deleted += 1
            except RecordStoreError as exc:
                if exc.status == 404:
                    continue
                logger.warning(
                    "token_sweep_batch_failed",
                    sweep_pass=pass_name,
                    page=page,
                    deleted=deleted,
                    remaining=len(ids) - deleted,
                    error=exc.message,
                )
                if exc.is_auth_error:
                    raise
                break
        return deleted

    async def _walk(
        self,
        pass_name: str,
        *,
        filter: str | None,
        fields: str,
        pick: Callable[[dict[str, Any]], bool],
    ) -> int:
        first = await self.store.list(
            Collection.PREVIEWS.value,
            page=1,
            per_page=self.batch_size,
            filter=filter,
            sort="created",
            fields=fields,
        )
        total_pages = int(first.get("totalPages") or 0)
        deleted = 0
        for page in range(total_pages, 0, -1):
            if page == 1:
                items = first.get("items") or []
            else:
                try:
                    result = await self.store.list(
                        Collection.PREVIEWS.value,
                        page=page,
                        per_page=self.batch_size,
                        filter=filter,
                        sort="created",
                        fields=fields,
                    )
                except RecordStoreError as exc:
                    if exc.is_auth_error:
                        raise
                    logger.warning("token_sweep_page_failed", sweep_pass=pass_name, page=page, error=exc.message)
                    continue
                items = result.get("items") or []
            ids = [item["id"] for item in items if pick(item)]
            if ids:
                deleted += await self._delete_batch(pass_name, page, ids)
        return deleted

    async def sweep_orphans(self) -> int:
        try:
            entries = await self.store.list_all(Collection.ENTRIES.value, fields="id")
            valid_ids = {entry["id"] for entry in entries}
            logger.debug("token_sweep_valid_entries", count=len(valid_ids))
            deleted = await self._walk(
                "orphans",
                filter=None,
                fields="id,entry",
                pick=lambda item: not item.get("entry") or item["entry"] not in valid_ids,
            )
        except RecordStoreError as exc:
            self._handle_pass_error("orphans", exc)
            return 0
        logger.info("token_sweep_orphans_done", deleted=deleted)
        return deleted

    async def sweep_expired(self) -> int:
        now = self.clock()
        try:
            deleted = await self._walk(
                "expired",
                filter=filters.cmp("expires_at", "<", now),
                fields="id",
                pick=lambda item: True,
            )
        except RecordStoreError as exc:
            self._handle_pass_error("expired", exc)
            return 0
        logger.info("token_sweep_expired_done", deleted=deleted)
        return deleted

    async def run_sweep(self) -> dict[str, int]:
        orphaned = await self.sweep_orphans()
        expired = await self.sweep_expired()
        return {"orphaned": orphaned, "expired": expired}


token_sweep_service = TokenSweepService()
