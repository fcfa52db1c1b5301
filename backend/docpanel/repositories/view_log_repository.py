from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from docpanel.models import ViewDuration, ViewLog


class ViewLogRepository:
    async def has_recent_view(
        self,
        db: AsyncSession,
        *,
        entry_id: str,
        ip_hash: str,
        since_epoch: int,
    ) -> bool:
        row = await db.execute(
            select(ViewLog.id)
            .where(
                ViewLog.entry_id == entry_id,
                ViewLog.ip_address == ip_hash,
                ViewLog.viewed_at > since_epoch,
            )
            .limit(1)
        )
        return row.scalar_one_or_none() is not None

    async def add_view(self, db: AsyncSession, *, entry_id: str, ip_hash: str, viewed_at: int) -> None:
        db.add(ViewLog(entry_id=entry_id, ip_address=ip_hash, viewed_at=viewed_at))
        await db.commit()

    async def add_duration(
        self,
        db: AsyncSession,
        *,
        entry_id: str,
        duration_seconds: int,
        logged_at: int,
        ip_hash: str | None,
    ) -> None:
        db.add(
            ViewDuration(
                entry_id=entry_id,
                duration_seconds=duration_seconds,
                logged_at=logged_at,
                ip_address=ip_hash,
            )
        )
        await db.commit()

    async def clear_entry(self, db: AsyncSession, entry_id: str) -> int:
        views = await db.execute(delete(ViewLog).where(ViewLog.entry_id == entry_id))
        await db.execute(delete(ViewDuration).where(ViewDuration.entry_id == entry_id))
        await db.commit()
        return int(views.rowcount or 0)


view_log_repository = ViewLogRepository()
