from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

_running_tasks: dict[str, asyncio.Task[Any]] = {}
_counter = itertools.count()


def start_task(name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
    """Create an asyncio task and register it under a unique key derived from `name`."""
    key = f"{name}-{next(_counter)}"
    task = asyncio.create_task(coro, name=key)
    _running_tasks[key] = task
    task.add_done_callback(lambda _: _running_tasks.pop(key, None))
    return task


def running_tasks() -> list[asyncio.Task[Any]]:
    return [t for t in _running_tasks.values() if not t.done()]


async def drain() -> None:
    """Wait for every registered task to settle (used on shutdown and in tests)."""
    tasks = running_tasks()
    if not tasks:
        return
    logger.info("Waiting for %d background task(s)", len(tasks))
    await asyncio.gather(*tasks, return_exceptions=True)
