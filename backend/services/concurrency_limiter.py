import asyncio
from typing import Any, Awaitable, Callable


class ConcurrencyLimiter:
    """
    Admission gate for async work: at most `limit` tasks run at once and the
    rest wait in arrival order. asyncio.Semaphore wakes its waiters FIFO.

    The handle returned by schedule() is a plain asyncio.Task, so a failing
    task surfaces its own exception to whoever awaits it without touching
    its siblings.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.running = 0
        self.peak = 0
        self._semaphore = asyncio.Semaphore(limit)

    async def _run(self, task_factory: Callable[[], Awaitable[Any]]) -> Any:
        async with self._semaphore:
            self.running += 1
            self.peak = max(self.peak, self.running)
            try:
                return await task_factory()
            finally:
                self.running -= 1

    def schedule(self, task_factory: Callable[[], Awaitable[Any]]) -> "asyncio.Task[Any]":
        return asyncio.create_task(self._run(task_factory))
