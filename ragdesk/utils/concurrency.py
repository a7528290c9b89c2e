"""Shared asyncio helpers.

1. **gather_settled** -- run awaitables concurrently, wait for *all* of
   them, and hand back results with failures kept as exception objects.
   The hybrid search engine uses it so that one failing retrieval branch
   never cancels or short-circuits the other.

2. **fire_and_forget** -- schedule a coroutine in the background, keep a
   strong reference until it finishes, and log (never raise) its failure.
   Usage metering runs through it.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Coroutine, TypeVar

import structlog

from ragdesk.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)

# asyncio keeps only weak references to tasks; hold them until done.
_BACKGROUND_TASKS: set[asyncio.Task[Any]] = set()


async def gather_settled(*aws: Awaitable[_T]) -> list[_T | BaseException]:
    """Await every awaitable and return results in input order.

    Returns
    -------
    list[_T | BaseException]
        One entry per input; failures appear as the raised exception.
    """
    return await asyncio.gather(*aws, return_exceptions=True)


def fire_and_forget(
    coro: Coroutine[Any, Any, Any],
    *,
    name: str,
    logger: structlog.BoundLogger | None = None,
) -> asyncio.Task[Any]:
    """Schedule *coro* on the running loop without awaiting it.

    A failure inside the coroutine is logged as ``background_task_failed``
    and otherwise ignored.
    """
    log = logger or _logger
    task = asyncio.create_task(coro, name=name)
    _BACKGROUND_TASKS.add(task)

    def _done(t: asyncio.Task[Any]) -> None:
        _BACKGROUND_TASKS.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            log.warning("background_task_failed", task=name, error=str(exc))

    task.add_done_callback(_done)
    return task


async def drain_background_tasks() -> None:
    """Wait for every pending background task; used on shutdown and in tests."""
    while _BACKGROUND_TASKS:
        await asyncio.gather(*list(_BACKGROUND_TASKS), return_exceptions=True)
