# dronefleet/periodic.py
# ------------------------------------------------------------
# Cooperative periodic worker.
#
# One asyncio task per timer, with an explicit stop signal.
# The callback may be sync or async; its exceptions are logged
# and the loop keeps running.
# ------------------------------------------------------------

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

log = logging.getLogger("dronefleet.periodic")

Callback = Callable[[], Union[None, Awaitable[None]]]


class PeriodicTask:
    def __init__(self, name: str, interval_sec: float, callback: Callback, run_immediately: bool = True):
        self.name = name
        self.interval_sec = interval_sec
        self.callback = callback
        self.run_immediately = run_immediately
        self.runs = 0

        self._task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """
        Start the loop on the running event loop. No-op if already running.
        """
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self.name)
        log.info("%s started (every %ss)", self.name, self.interval_sec)

    def stop(self) -> None:
        """
        Signal the loop to exit. Safe to call when not running.
        """
        if self._stop is not None:
            self._stop.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            log.info("%s stopped", self.name)
        self._task = None

    async def wait_stopped(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run_once(self) -> None:
        try:
            result = self.callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            log.exception("%s iteration failed", self.name)
        self.runs += 1

    async def _loop(self) -> None:
        stop = self._stop
        if self.run_immediately:
            await self._run_once()

        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval_sec)
            except asyncio.TimeoutError:
                await self._run_once()
