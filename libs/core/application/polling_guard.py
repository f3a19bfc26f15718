"""Interval re-polling for resources without a push channel."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Generic, TypeVar

from libs.core.application.errors import SnapshotFailure

logger = logging.getLogger(__name__)

POLL_INTERVAL_SEC = 2.0

T = TypeVar("T")


class PollingGuard(Generic[T]):
    """Polls while any tracked item is in progress, never overlapping requests.

    ``update`` is called with the latest known items; it starts the loop when
    the condition becomes true and stops it when it turns false. ``close``
    tears the loop down for good.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[list[T]]],
        in_progress: Callable[[T], bool],
        on_result: Callable[[list[T]], None],
        on_error: Callable[[SnapshotFailure], None] | None = None,
        interval_sec: float = POLL_INTERVAL_SEC,
    ) -> None:
        if interval_sec <= 0:
            raise ValueError("poll interval must be positive")
        self._fetch = fetch
        self._in_progress = in_progress
        self._on_result = on_result
        self._on_error = on_error
        self._interval_sec = interval_sec
        self._active = False
        self._in_flight = False
        self._closed = False
        self._task: asyncio.Task[None] | None = None

    @property
    def polling(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def update(self, items: list[T]) -> bool:
        self._active = not self._closed and any(
            self._in_progress(item) for item in items
        )
        if self._active and not self.polling:
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.debug("Polling started")
        elif not self._active and self._task is not None:
            task = self._task
            self._task = None
            if task is not asyncio.current_task():
                task.cancel()
            logger.debug("Polling stopped")
        return self._active

    async def poll_once(self) -> bool:
        if self._in_flight:
            return False
        self._in_flight = True
        try:
            items = await self._fetch()
        except SnapshotFailure as error:
            logger.warning("Poll request failed: %s", error)
            if self._on_error is not None:
                self._on_error(error)
            return False
        finally:
            self._in_flight = False
        self._on_result(items)
        self.update(items)
        return True

    async def close(self) -> None:
        self._closed = True
        self._active = False
        task = self._task
        self._task = None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while self._active:
            await asyncio.sleep(self._interval_sec)
            if not self._active:
                break
            await self.poll_once()
