"""
Adaptive Worker Manager
Handles a pool of asynchronous workers that drain a shared FIFO queue.
"""

import asyncio
import logging
from typing import Callable, Awaitable, Any, List, Optional

logger = logging.getLogger(__name__)

# Put once per worker by close(); a worker exits when it takes one.
_CLOSED = object()


class AdaptiveWorkerManager:
    """
    Manages a pool of asynchronous workers to process items from an asyncio.Queue.

    Workers block on the queue while it is empty and exit once the queue is
    closed. A stop_event makes workers skip remaining items without processing
    them (used when a run is aborted).
    """

    def __init__(
            self,
            work_coro: Callable[[Any], Awaitable[None]],
            queue: asyncio.Queue,
            concurrency: int,
            stop_event: Optional[asyncio.Event] = None,
    ):
        """
        Initialize the AdaptiveWorkerManager.

        Args:
            work_coro: Asynchronous function to execute for each queue item.
            queue: The queue to retrieve items from.
            concurrency: Number of parallel worker tasks to spawn.
            stop_event: Signal to skip outstanding work.
        """
        self.work_coro = work_coro
        self.queue = queue
        self.concurrency = max(1, int(concurrency))
        self.stop_event = stop_event or asyncio.Event()

        self._tasks: List[asyncio.Task] = []
        self._has_started: bool = False
        self._closed: bool = False

    async def run(self) -> None:
        """
        Start the worker pool and wait for all workers to exit.
        """
        if self._has_started:
            logger.warning("WorkerManager already running.")
            return

        self._has_started = True
        logger.debug("Starting %d workers...", self.concurrency)

        self._tasks = [
            asyncio.create_task(self._worker_loop(f"Worker-{i + 1}"))
            for i in range(self.concurrency)
        ]

        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        except asyncio.CancelledError:
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            raise
        logger.debug("All workers have been shut down and gathered.")

    async def close(self) -> None:
        """Closes the queue: every worker receives one shutdown marker."""
        if self._closed:
            return
        self._closed = True
        for _ in range(self.concurrency):
            await self.queue.put(_CLOSED)

    async def _worker_loop(self, name: str) -> None:
        logger.debug("[%s] Started.", name)

        while True:
            try:
                item = await self.queue.get()
            except asyncio.CancelledError:
                logger.debug("[%s] Task cancelled during queue retrieval.", name)
                break

            if item is _CLOSED:
                self.queue.task_done()
                break

            try:
                if not self.stop_event.is_set():
                    await self.work_coro(item)

            except asyncio.CancelledError:
                logger.debug("[%s] Task cancelled during execution of work_coro.", name)
                self.queue.task_done()
                break

            except Exception:
                logger.exception("[%s] Unhandled exception processing item: %s", name, item)
                self.queue.task_done()
                continue

            self.queue.task_done()

        logger.debug("[%s] Stopped.", name)
