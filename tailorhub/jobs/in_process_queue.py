"""In-process job queue using asyncio.

Runs try-on generation one job at a time in a background task, so a burst
of previews never fans out into parallel calls to the image model.
No external dependencies (Redis, Celery) needed.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from tailorhub.jobs.dispatcher import JobDispatcher
from tailorhub.tryon.models import TryOnJob

logger = logging.getLogger(__name__)


class InProcessQueue(JobDispatcher):
    """Local async job queue. Processes jobs one at a time via asyncio."""

    def __init__(self, worker_fn: Callable[[TryOnJob], Awaitable[None]]):
        """
        worker_fn: async callable(job: TryOnJob) -> None
            Does the work and records the outcome on the job row itself.
        """
        self._queue: asyncio.Queue[TryOnJob] = asyncio.Queue()
        self._worker_fn = worker_fn
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def pending_count(self) -> int:
        return self._queue.qsize()

    async def submit(self, job: TryOnJob) -> str:
        await self._queue.put(job)
        return job.id

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._worker_loop())

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _worker_loop(self) -> None:
        """Process jobs one at a time from the queue."""
        while self._running:
            try:
                job = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            try:
                await self._worker_fn(job)
            except Exception as e:
                logger.error("Worker crashed on job %s: %s", job.id, e, exc_info=True)
            finally:
                self._queue.task_done()
