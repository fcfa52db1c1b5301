"""
DocPanel - View/Duration Tracker
================================
Counts public page views once per visitor per entry within a rolling window,
collects reading durations and helpful/not-helpful feedback.

The de-duplication is check-then-insert without a lock: two concurrent
first views from one visitor can both count. The counter itself uses the
record store's atomic increment.
"""

from __future__ import annotations

import enum
import math
import re
import time
from collections.abc import Callable
from typing import Any

from docpanel.core.config import get_settings
from docpanel.core.database import async_session
from docpanel.core.errors import RecordStoreError
from docpanel.core.logging import get_logger
from docpanel.core.security import hash_ip
from docpanel.models import Collection
from docpanel.repositories.record_store import RecordStore, record_store
from docpanel.repositories.view_log_repository import ViewLogRepository, view_log_repository

logger = get_logger("services.view_tracker")
settings = get_settings()

MIN_DURATION_SECONDS = 1
MAX_DURATION_SECONDS = 3600


class ViewOutcome(str, enum.Enum):
    COUNTED = "counted"
    DUPLICATE = "duplicate"
    SKIPPED_ADMIN = "skipped_admin"
    SKIPPED_BOT = "skipped_bot"
    SKIPPED_NO_IP = "skipped_no_ip"
    FAILED = "failed"


def is_bot(user_agent: str | None, markers: list[str] | None = None) -> bool:
    if not user_agent:
        return False
    ua = user_agent.lower()
    return any(marker in ua for marker in (markers if markers is not None else settings.bot_user_agents_list))


def reading_time_minutes(markdown: str | None, wpm: int | None = None) -> int:
    words = len(re.findall(r"\S+", markdown or ""))
    if words == 0:
        return 0
    return max(1, math.ceil(words / (wpm or settings.average_wpm)))


class ViewTracker:
    def __init__(
        self,
        store: RecordStore | None = None,
        repository: ViewLogRepository | None = None,
        session_factory: Callable[[], Any] | None = None,
        *,
        clock: Callable[[], float] = time.time,
        timeframe_hours: int | None = None,
        bot_markers: list[str] | None = None,
    ):
        self.store = store or record_store
        self.repository = repository or view_log_repository
        self.session_factory = session_factory or async_session
        self.clock = clock
        self.timeframe_hours = timeframe_hours or settings.view_timeframe_hours
        self.bot_markers = bot_markers

    def _skip_reason(self, user_agent: str | None, from_admin: bool) -> ViewOutcome | None:
        if from_admin:
            return ViewOutcome.SKIPPED_ADMIN
        if is_bot(user_agent, self.bot_markers):
            return ViewOutcome.SKIPPED_BOT
        return None

    async def record_view(
        self,
        entry_id: str,
        ip: str | None,
        user_agent: str | None = None,
        *,
        from_admin: bool = False,
    ) -> ViewOutcome:
        skip = self._skip_reason(user_agent, from_admin)
        if skip is not None:
            return skip

        ip_hash = hash_ip(ip)
        if not entry_id or not ip_hash:
            logger.warning("view_skipped_no_ip", entry_id=entry_id)
            return ViewOutcome.SKIPPED_NO_IP

        now = int(self.clock())
        since = now - self.timeframe_hours * 3600
        try:
            async with self.session_factory() as db:
                if await self.repository.has_recent_view(db, entry_id=entry_id, ip_hash=ip_hash, since_epoch=since):
                    return ViewOutcome.DUPLICATE
                await self.repository.add_view(db, entry_id=entry_id, ip_hash=ip_hash, viewed_at=now)
        except Exception as exc:  # noqa: BLE001
            logger.error("view_log_write_failed", entry_id=entry_id, error=str(exc))
            return ViewOutcome.FAILED

        try:
            await self.store.increment(Collection.ENTRIES.value, entry_id, "views", 1)
        except RecordStoreError as exc:
            if exc.status != 404:
                logger.error("view_increment_failed", entry_id=entry_id, status=exc.status, error=exc.message)
            return ViewOutcome.FAILED
        return ViewOutcome.COUNTED

    async def record_duration(
        self,
        entry_id: str,
        seconds: int,
        ip: str | None,
        user_agent: str | None = None,
        *,
        from_admin: bool = False,
    ) -> bool:
        if self._skip_reason(user_agent, from_admin) is not None:
            return False
        try:
            seconds = int(seconds)
        except (TypeError, ValueError):
            return False
        if seconds < MIN_DURATION_SECONDS or seconds > MAX_DURATION_SECONDS:
            logger.debug("view_duration_out_of_range", entry_id=entry_id, seconds=seconds)
            return False

        try:
            async with self.session_factory() as db:
                await self.repository.add_duration(
                    db,
                    entry_id=entry_id,
                    duration_seconds=seconds,
                    logged_at=int(self.clock()),
                    ip_hash=hash_ip(ip),
                )
            await self.store.increment(Collection.ENTRIES.value, entry_id, "total_view_duration", seconds)
            await self.store.increment(Collection.ENTRIES.value, entry_id, "view_duration_count", 1)
        except Exception as exc:  # noqa: BLE001
            logger.error("view_duration_failed", entry_id=entry_id, error=str(exc))
            return False
        return True

    async def record_feedback(self, entry_id: str, helpful: bool) -> dict[str, Any]:
        field = "helpful_yes" if helpful else "helpful_no"
        return await self.store.increment(Collection.ENTRIES.value, entry_id, field, 1)

    async def clear_view_logs(self, entry_id: str | None) -> int:
        """Drop every local row for an entry. Best effort."""
        if not entry_id:
            return 0
        try:
            async with self.session_factory() as db:
                removed = await self.repository.clear_entry(db, entry_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("view_log_clear_failed", entry_id=entry_id, error=str(exc))
            return 0
        logger.debug("view_logs_cleared", entry_id=entry_id, removed=removed)
        return removed


view_tracker = ViewTracker()
