"""Detached side-effect tasks (audit writes, token purges, view increments)."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable

from docpanel.core.logging import get_logger

logger = get_logger("background")

_running_tasks: set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _running_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "background_task_failed",
            task=task.get_name(),
            error=str(exc),
            error_type=type(exc).__name__,
        )


def fire_and_forget(coro: Awaitable, *, name: str) -> asyncio.Task:
    """Schedule coro without awaiting it. The caller's result never depends on it."""
    task = asyncio.ensure_future(coro)
    task.set_name(name)
    _running_tasks.add(task)
    task.add_done_callback(_on_done)
    return task


def pending_count() -> int:
    return len(_running_tasks)


async def drain(timeout: float = 5.0) -> None:
    """Wait for outstanding detached tasks (used on shutdown and in tests)."""
    loop = asyncio.get_running_loop()
    for task in [t for t in _running_tasks if t.get_loop() is not loop]:
        _running_tasks.discard(task)
    pending = list(_running_tasks)
    if not pending:
        return
    done, not_done = await asyncio.wait(pending, timeout=timeout)
    for task in not_done:
        task.cancel()
    if not_done:
        logger.warning("background_drain_timeout", cancelled=len(not_done), finished=len(done))
