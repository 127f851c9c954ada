"""
Per-view request lifetimes.

Opening a view starts a ``ViewLifetime``; every backend call made for that
view runs as a task owned by it. Navigating to the same view again supersedes
the older lifetime and cancels its outstanding tasks, so a slow response from
an earlier navigation can never overwrite the newer one.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Dict, Set

from staffboard.gateway.errors import GatewayError

logger = logging.getLogger(__name__)


class ViewSuperseded(Exception):
    """The view was opened again before this load finished."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"view {key!r} superseded by a newer navigation")


class ViewLifetime:
    def __init__(self, key: str):
        self.key = key
        self.superseded = False
        self._tasks: Set[asyncio.Task] = set()

    async def run(self, awaitable: Awaitable) -> Any:
        if self.superseded:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ViewSuperseded(self.key)
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self.superseded:
                raise ViewSuperseded(self.key)
            raise
        finally:
            self._tasks.discard(task)

    async def run_or_default(self, awaitable: Awaitable, default: Any, label: str = "") -> Any:
        """Run one call; a gateway failure yields ``default`` instead of raising."""
        try:
            return await self.run(awaitable)
        except GatewayError as exc:
            logger.warning(f"[{self.key}] {label or 'fetch'} failed ({exc.message}), using default")
            return default

    async def gather_with_defaults(self, *calls) -> list:
        """
        Issue ``(awaitable, default, label)`` calls concurrently and join them.
        A failed entry falls back to its default; the batch is never aborted.
        """
        return list(
            await asyncio.gather(
                *(self.run_or_default(awaitable, default, label) for awaitable, default, label in calls)
            )
        )

    def cancel(self) -> None:
        self.superseded = True
        for task in list(self._tasks):
            task.cancel()

    @property
    def pending(self) -> int:
        return len(self._tasks)


class ViewRegistry:
    def __init__(self):
        self._active: Dict[str, ViewLifetime] = {}

    def begin(self, key: str) -> ViewLifetime:
        previous = self._active.get(key)
        if previous is not None:
            logger.debug(f"Cancelling superseded load of {key} ({previous.pending} pending)")
            previous.cancel()
        lifetime = ViewLifetime(key)
        self._active[key] = lifetime
        return lifetime

    def end(self, lifetime: ViewLifetime) -> None:
        if self._active.get(lifetime.key) is lifetime:
            del self._active[lifetime.key]

    @asynccontextmanager
    async def open(self, key: str):
        lifetime = self.begin(key)
        try:
            yield lifetime
        finally:
            self.end(lifetime)

    def cancel_all(self) -> None:
        for lifetime in list(self._active.values()):
            lifetime.cancel()
        self._active.clear()
