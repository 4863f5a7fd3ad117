"""Per-key single-flight registry for async computations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Coalesces concurrent calls for the same key into one computation.

    The first caller for a key starts the computation as a task and
    registers it. Callers arriving while it runs await the same task.
    The registration is dropped when the task finishes, whether it
    succeeded or failed, so a failed key can be attempted again.

    Waiters are shielded: cancelling one caller does not cancel the shared
    computation for the others.
    """

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task[T]] = {}
        self._joined = 0

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory()`` for ``key`` unless a run is already in flight."""
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            self._joined += 1
            logger.info("Joining in-flight render: %s", key)
        return await asyncio.shield(task)

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    @property
    def joined(self) -> int:
        """Number of calls that were served by an already-running task."""
        return self._joined

    def __len__(self) -> int:
        return len(self._inflight)

    def _forget(self, key: str, task: asyncio.Task[T]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
