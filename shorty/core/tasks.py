"""Fire-and-forget task dispatch with a logging error boundary."""

import asyncio
from typing import Coroutine, Set

from loguru import logger

# Strong references so pending tasks are not garbage collected
_bg_tasks: Set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _bg_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.opt(exception=exc).error("Background task failed", task=task.get_name())


def fire_and_forget(coro: Coroutine, name: str = "background") -> asyncio.Task:
    """
    Schedule coro on the running loop without awaiting it.

    Failures are logged and never propagate to the caller.
    """
    task = asyncio.create_task(coro, name=name)
    _bg_tasks.add(task)
    task.add_done_callback(_on_done)
    return task


async def drain_background_tasks() -> None:
    """Wait for every pending fire-and-forget task, used on shutdown and in tests."""
    while _bg_tasks:
        await asyncio.gather(*list(_bg_tasks), return_exceptions=True)
