# datalayer/refresh.py

import asyncio
from typing import Awaitable, Callable, Optional


class CoalescedRefresh:
    """
    Runs an async refresh with at most one run in flight.
    Requests that arrive while a run is in flight are folded into exactly one
    follow-up run, so the last completed run always started after the last request.
    """

    def __init__(self, refresh_once: Callable[[], Awaitable[None]]):
        self._refresh_once = refresh_once
        self._task: Optional[asyncio.Task] = None
        self._requested = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def request(self) -> asyncio.Task:
        """Schedules a refresh without waiting for it."""
        self._requested = True
        if not self.running:
            self._task = asyncio.create_task(self._run())
        return self._task

    async def __call__(self):
        # Shielded so a cancelled caller does not cancel the run other callers share
        await asyncio.shield(self.request())

    async def _run(self):
        while self._requested:
            self._requested = False
            await self._refresh_once()

    async def cancel(self):
        self._requested = False
        if self.running:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def wait(self):
        """Waits for the in-flight run, including any follow-up run it picked up."""
        if self._task is not None:
            await asyncio.shield(self._task)
