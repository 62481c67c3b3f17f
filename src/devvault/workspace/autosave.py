"""Debounced, serialized commits of editor buffers to the item repository."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

__all__ = ["DebounceTimer", "AutosaveScheduler", "DEFAULT_AUTOSAVE_DELAY"]

LOGGER = logging.getLogger(__name__)
DEFAULT_AUTOSAVE_DELAY = 0.5

CommitCallback = Callable[[], Awaitable[bool]]


class DebounceTimer:
    """Cancellable one-shot timer; scheduling again replaces the pending handle."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._delay = max(0.0, float(delay))
        self._callback = callback
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> bool:
        handle, self._handle = self._handle, None
        if handle is None:
            return False
        handle.cancel()
        return True

    def _fire(self) -> None:
        self._handle = None
        self._callback()


class AutosaveScheduler:
    """Runs ``commit`` after an idle period, one commit at a time.

    A commit started while another is in flight waits for it to finish, so
    writes for the same buffer never overlap; the commit callback re-reads the
    buffer when it runs, never at scheduling time.
    """

    def __init__(
        self,
        commit: CommitCallback,
        *,
        delay: float = DEFAULT_AUTOSAVE_DELAY,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._commit = commit
        self._loop = loop
        self._timer = DebounceTimer(delay, self._on_timer, loop=loop)
        self._inflight: asyncio.Task[bool] | None = None

    @property
    def pending(self) -> bool:
        return self._timer.pending

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def schedule(self) -> None:
        self._timer.schedule()

    def cancel(self) -> bool:
        """Drop the pending timer; a commit already sent is left to finish."""

        return self._timer.cancel()

    async def commit_now(self) -> bool:
        self._timer.cancel()
        return await self._start_commit()

    async def wait_idle(self) -> None:
        while self._inflight is not None and not self._inflight.done():
            await asyncio.wait([self._inflight])

    def _on_timer(self) -> None:
        task = self._start_commit()
        task.add_done_callback(_log_commit_failure)

    def _start_commit(self) -> asyncio.Task[bool]:
        loop = self._loop or asyncio.get_running_loop()
        previous = self._inflight
        task = loop.create_task(self._run_after(previous))
        self._inflight = task
        return task

    async def _run_after(self, previous: asyncio.Task[bool] | None) -> bool:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        return await self._commit()


def _log_commit_failure(task: asyncio.Task[bool]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        LOGGER.error("Autosave commit raised unexpectedly", exc_info=error)
