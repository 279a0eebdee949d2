"""Cancellable geocode tasks keyed by ``(layer_id, query)``.

Starting a task for a key that already has one in flight cancels the older
task. A cancelled or superseded task yields ``None`` to its caller, so stale
results are never written back.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

from loguru import logger


class CancellationToken:
    """Flag shared between a registry entry and the work it runs."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class TaskRegistry:
    def __init__(self) -> None:
        self._running: dict[Hashable, tuple[CancellationToken, asyncio.Task]] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._running

    def __len__(self) -> int:
        return len(self._running)

    async def run(
        self,
        key: Hashable,
        factory: Callable[[CancellationToken], Awaitable[Any]],
    ) -> Any | None:
        """Run ``factory(token)`` as the current task for ``key``.

        Returns the result, or None if the task was cancelled or superseded
        before it finished. Exceptions raised by the work propagate.
        """
        self.cancel(key)
        token = CancellationToken()
        task = asyncio.ensure_future(factory(token))
        self._running[key] = (token, task)
        try:
            result = await task
        except asyncio.CancelledError:
            if token.cancelled:
                return None
            raise
        finally:
            current = self._running.get(key)
            if current is not None and current[0] is token:
                del self._running[key]
        if token.cancelled:
            logger.debug(f"Discarding stale geocode result for {key!r}")
            return None
        return result

    def cancel(self, key: Hashable) -> bool:
        entry = self._running.pop(key, None)
        if entry is None:
            return False
        token, task = entry
        token.cancel()
        task.cancel()
        logger.debug(f"Cancelled geocode task {key!r}")
        return True

    def cancel_matching(self, predicate: Callable[[Hashable], bool]) -> int:
        keys = [key for key in self._running if predicate(key)]
        for key in keys:
            self.cancel(key)
        return len(keys)

    def cancel_all(self) -> int:
        return self.cancel_matching(lambda key: True)
