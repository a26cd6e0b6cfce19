"""Timed UI behaviour: the finish-screen auto redirect and the landing carousel.

Both run on the asyncio loop and must be cancelled when their view goes away.
"""
from __future__ import annotations
import asyncio
from typing import Awaitable, Callable, Sequence

from . import config
from .logging_config import get_logger

logger = get_logger(__name__)


class AutoAdvance:
    """Call ``on_fire`` once after ``delay`` seconds unless cancelled first."""

    def __init__(self, on_fire: Callable[[], Awaitable[None] | None], delay: float = config.FINISH_REDIRECT_DELAY):
        self.on_fire = on_fire
        self.delay = delay
        self._task: asyncio.Task | None = None
        self.fired = False

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        self.fired = True
        result = self.on_fire()
        if asyncio.iscoroutine(result):
            await result

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("timer.cancelled", delay=self.delay)
        self._task = None

    async def wait(self) -> None:
        if self._task is not None:
            await self._task


class Carousel:
    """Rotates through ``items`` every ``interval`` seconds while running."""

    def __init__(self, items: Sequence[str], interval: float = config.CAROUSEL_INTERVAL):
        if not items:
            raise ValueError("carousel needs at least one item")
        self.items = list(items)
        self.interval = interval
        self.index = 0
        self._task: asyncio.Task | None = None

    @property
    def current(self) -> str:
        return self.items[self.index]

    def advance(self) -> str:
        self.index = (self.index + 1) % len(self.items)
        return self.current

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.advance()

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
