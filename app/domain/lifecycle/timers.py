# app/domain/lifecycle/timers.py
from __future__ import annotations

import asyncio
import logging
from typing import Coroutine, List

logger = logging.getLogger(__name__)


class GameTimers:
    """
    Every background task that belongs to one game (countdown, zone,
    opponents). cancel_all() is the single teardown step: it bumps the
    generation so a tick already past its sleep sees it is stale, then
    cancels and awaits the tasks.
    """

    def __init__(self) -> None:
        self._tasks: List[asyncio.Task] = []
        self.generation = 0

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    @property
    def active(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.append(task)
        return task

    async def cancel_all(self) -> None:
        self.generation += 1
        current = asyncio.current_task()
        tasks, self._tasks = self._tasks, []

        others = [t for t in tasks if t is not current]
        for t in others:
            if not t.done():
                t.cancel()
        if not others:
            return

        results = await asyncio.gather(*others, return_exceptions=True)
        for t, res in zip(others, results):
            if isinstance(res, Exception):
                logger.error("timer task %s failed", t.get_name(), exc_info=res)
