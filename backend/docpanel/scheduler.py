"""Scheduled jobs: hourly preview-token sweep and the periodic version check."""

from __future__ import annotations

from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from docpanel.core.config import get_settings
from docpanel.core.logging import get_logger
from docpanel.services.token_sweep import token_sweep_service
from docpanel.services.version_service import version_service

settings = get_settings()
logger = get_logger("scheduler")

_scheduler: AsyncIOScheduler | None = None


async def run_token_sweep() -> dict[str, int]:
    logger.info("token_sweep_started")
    try:
        result = await token_sweep_service.run_sweep()
    except Exception as exc:  # noqa: BLE001
        logger.error("token_sweep_crashed", error=str(exc), error_type=type(exc).__name__)
        return {"orphaned": 0, "expired": 0}
    logger.info("token_sweep_finished", **result)
    return result


async def run_version_check() -> None:
    await version_service.refresh(force=True)


def start_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        return

    _scheduler = AsyncIOScheduler(timezone=settings.scheduler_timezone)
    _scheduler.add_job(
        run_token_sweep,
        trigger=CronTrigger(minute=settings.sweep_cron_minute, timezone=settings.scheduler_timezone),
        id="preview_token_sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    _scheduler.add_job(
        run_version_check,
        trigger=IntervalTrigger(hours=settings.version_check_interval_hours, timezone=settings.scheduler_timezone),
        id="version_check",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
    )
    _scheduler.start()
    logger.info(
        "scheduler_started",
        timezone=settings.scheduler_timezone,
        sweep=f"every hour at :{settings.sweep_cron_minute:02d}",
        version_check_hours=settings.version_check_interval_hours,
    )


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler is None:
        return
    _scheduler.shutdown(wait=False)
    _scheduler = None
    logger.info("scheduler_stopped")
