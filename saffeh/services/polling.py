# saffeh/services/polling.py
"""
Polling scope — owns the background polling tasks of one screen/session.

At most one live task per key; leaving the scope cancels every task and
waits for it to finish, so no poller outlives the region that started it.

    async with PollingScope("reservation-screen") as scope:
        scope.start(f"pay-{rid}", poller.run(checkout))
        scope.start(f"qr-{rid}", watcher.run(rid))
"""

import asyncio
from typing import Awaitable, Callable, Coroutine, Optional

from saffeh.utils.logger import get_logger

logger = get_logger(__name__)


class PollingScope:
    def __init__(self, name: str = "scope"):
        self.name = name
        self._tasks: dict[str, asyncio.Task] = {}
        self._closed = False

    async def __aenter__(self) -> "PollingScope":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def start(self, key: str, coro: Coroutine) -> asyncio.Task:
        """Run `coro` under `key`. If a task for `key` is still live, that task is returned instead."""
        if self._closed:
            coro.close()
            raise RuntimeError(f"Polling scope {self.name} is closed")
        existing = self._tasks.get(key)
        if existing is not None and not existing.done():
            coro.close()
            logger.debug(f"[{self.name}] poller {key} already running")
            return existing
        task = asyncio.create_task(coro, name=f"{self.name}:{key}")
        self._tasks[key] = task
        logger.debug(f"[{self.name}] started poller {key}")
        return task

    def is_running(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    async def stop(self, key: str):
        task = self._tasks.pop(key, None)
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.debug(f"[{self.name}] stopped poller {key}")

    async def close(self):
        self._closed = True
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug(f"[{self.name}] torn down {len(tasks)} poller(s)")


async def poll_every(
    interval: float,
    tick: Callable[[], Awaitable[bool]],
    sleep: Optional[Callable[[float], Awaitable]] = None,
):
    """
    Call `tick` immediately, then every `interval` seconds, until it returns True.
    Exceptions from `tick` end the loop; tolerate them inside `tick`.
    """
    sleep = sleep or asyncio.sleep
    while True:
        if await tick():
            return
        await sleep(interval)
