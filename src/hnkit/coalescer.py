"""Per-key request coalescing.

Concurrent callers asking for the same key share one underlying task. The
registry entry is dropped from inside that task before it settles, so by the
time any waiter sees the result (or the error) the key is free again and the
next call starts a fresh fetch instead of replaying a failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Hashable
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

log = structlog.get_logger()


class RequestCoalescer:
    """Deduplicate identical in-flight requests.

    Registry reads and writes happen between awaits only, so on a single event
    loop every ``fetch`` call sees a consistent registry without a lock.
    """

    def __init__(self) -> None:
        self._in_flight: dict[Hashable, asyncio.Task[Any]] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    async def fetch(self, key: Hashable, producer: Callable[[], Awaitable[T]]) -> T:
        task = self._in_flight.get(key)
        if task is not None:
            log.debug("coalesced_join", key=key)
        else:
            task = asyncio.create_task(self._run(key, producer))
            task.add_done_callback(_observe_outcome)
            self._in_flight[key] = task

        # Shielded so that a waiter being cancelled leaves the shared fetch running.
        return await asyncio.shield(task)

    async def _run(self, key: Hashable, producer: Callable[[], Awaitable[T]]) -> T:
        try:
            return await producer()
        finally:
            self._in_flight.pop(key, None)


def _observe_outcome(task: asyncio.Task[Any]) -> None:
    # Retrieve the exception even when every waiter was cancelled.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.debug("coalesced_fetch_failed", error=str(exc))
