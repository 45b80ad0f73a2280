"""Try-on job orchestration: submit, poll, wait, and fall back.

Job states: queued -> processing -> {done | failed}. The orchestrator only
ever writes a job to create it, or to mark it failed when the worker could
not be reached at all. Everything after that belongs to the worker.

A timed-out wait is reported to the caller but leaves the stored job alone.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from tailorhub.config import settings
from tailorhub.db.records import RecordStore
from tailorhub.errors import TailorHubError, TransientIOError
from tailorhub.orders.draft_store import OrderDraftStore
from tailorhub.tryon.models import (
    FallbackResult,
    MessageCallback,
    PollProgressCallback,
    PollResult,
    SubmitResult,
    TryOnJob,
    TryOnRequest,
    TryOnStatus,
    WaitResult,
)

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "Timeout waiting for generation"

SleepFn = Callable[[float], Awaitable[None]]


class WorkerInvoker(Protocol):
    async def invoke(self, job: TryOnJob) -> None:
        """Hand the job to the generation worker and return immediately.

        Raises TransientIOError if the worker cannot be reached.
        """
        ...


class PollHandle:
    """Held by the caller to stop a wait loop between attempts."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


def status_message(status: TryOnStatus, attempt: int, max_attempts: int) -> str:
    return {
        TryOnStatus.QUEUED: "In queue, please wait...",
        TryOnStatus.PROCESSING: "Applying style to your photo...",
    }.get(status, f"Processing ({attempt}/{max_attempts})...")


class TryOnOrchestrator:
    def __init__(
        self,
        records: RecordStore,
        drafts: OrderDraftStore,
        invoker: WorkerInvoker,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._records = records
        self._drafts = drafts
        self._invoker = invoker
        self._sleep = sleep
        self.poll_interval = (
            settings.tryon_poll_interval_seconds if poll_interval is None else poll_interval
        )
        self.max_attempts = (
            settings.tryon_max_attempts if max_attempts is None else max_attempts
        )

    async def submit(self, request: TryOnRequest, user_id: Optional[str]) -> SubmitResult:
        """Create a queued job for the order and start the worker.

        The caller must own the order or be its assigned tailor.
        """
        if not request.customer_photo_url or not request.style_photo_url:
            return SubmitResult(error="Missing required data for try-on generation")

        try:
            await self._drafts.can_access(request.order_id, user_id)
            row = await self._records.insert_job({
                "order_id": request.order_id,
                "input_payload": {
                    "customer_photo_url": request.customer_photo_url,
                    "style_photo_url": request.style_photo_url,
                },
                "measurement_data": request.measurements,
                "status": TryOnStatus.QUEUED.value,
            })
        except TransientIOError as e:
            logger.warning("Could not create try-on job for order %s: %s", request.order_id, e)
            return SubmitResult(error="Failed to start try-on generation")
        except TailorHubError as e:
            return SubmitResult(error=e.message)

        job = TryOnJob.from_row(row)
        try:
            await self._invoker.invoke(job)
        except TransientIOError as e:
            logger.warning("Try-on worker unreachable for job %s: %s", job.id, e)
            await self._mark_failed(job.id, "Could not reach the try-on service")
            return SubmitResult(job_id=job.id, error="Network error while generating try-on preview")

        logger.info("Submitted try-on job %s for order %s", job.id, request.order_id)
        return SubmitResult(job_id=job.id)

    async def _mark_failed(self, job_id: str, message: str) -> None:
        try:
            await self._records.update_job(
                job_id, {"status": TryOnStatus.FAILED.value, "error_msg": message}
            )
        except TailorHubError as e:
            logger.error("Could not mark try-on job %s failed: %s", job_id, e)

    async def get_job(self, job_id: str) -> Optional[TryOnJob]:
        """Full job record, or None. Raises TransientIOError on read failure."""
        row = await self._records.get_job(job_id)
        return TryOnJob.from_row(row) if row else None

    async def poll(self, job_id: str) -> PollResult:
        """Read the job's current state. Read errors are reported as failed."""
        try:
            row = await self._records.get_job(job_id)
        except TransientIOError as e:
            logger.warning("Poll of try-on job %s failed: %s", job_id, e)
            return PollResult(status=TryOnStatus.FAILED, error_msg="Failed to check status")

        if row is None:
            return PollResult(status=TryOnStatus.FAILED, error_msg="Try-on job not found")

        job = TryOnJob.from_row(row)
        return PollResult(status=job.status, output_url=job.output_url, error_msg=job.error_msg)

    async def wait_for_completion(
        self,
        job_id: str,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        on_progress: Optional[PollProgressCallback] = None,
        handle: Optional[PollHandle] = None,
    ) -> WaitResult:
        """Poll until the job is terminal or the attempt ceiling is reached.

        One poll in flight at a time; sleeps `interval` seconds between polls
        but not after the last one.
        """
        max_attempts = self.max_attempts if max_attempts is None else max_attempts
        interval = self.poll_interval if interval is None else interval

        for attempt in range(1, max_attempts + 1):
            if handle is not None and handle.cancelled:
                return WaitResult(success=False, error="Cancelled", attempts=attempt - 1)

            result = await self.poll(job_id)
            if on_progress is not None:
                on_progress(attempt, result.status)

            if result.status == TryOnStatus.DONE:
                return WaitResult(success=True, output_url=result.output_url, attempts=attempt)
            if result.status == TryOnStatus.FAILED:
                return WaitResult(
                    success=False,
                    error=result.error_msg or "Generation failed",
                    attempts=attempt,
                )

            if attempt < max_attempts:
                await self._sleep(interval)

        logger.warning("Gave up on try-on job %s after %d polls", job_id, max_attempts)
        return WaitResult(success=False, error=TIMEOUT_ERROR, attempts=max_attempts)

    async def generate_with_fallback(
        self,
        request: TryOnRequest,
        fallback_url: str,
        user_id: Optional[str],
        on_progress: Optional[MessageCallback] = None,
        handle: Optional[PollHandle] = None,
    ) -> FallbackResult:
        """submit + wait. Every failure resolves to the fallback image; never raises."""
        job_id = None
        try:
            if on_progress:
                on_progress("Initializing AI generation...")

            submitted = await self.submit(request, user_id)
            job_id = submitted.job_id
            if submitted.error or not job_id:
                logger.warning("Try-on submission failed, using fallback: %s", submitted.error)
                return FallbackResult(
                    url=fallback_url, is_fallback=True, error=submitted.error, job_id=job_id
                )

            if on_progress:
                on_progress("Processing your photo...")

            def report(attempt: int, status: TryOnStatus) -> None:
                if on_progress:
                    on_progress(status_message(status, attempt, self.max_attempts))

            result = await self.wait_for_completion(job_id, on_progress=report, handle=handle)
            if result.success and result.output_url:
                if on_progress:
                    on_progress("Complete!")
                return FallbackResult(url=result.output_url, is_fallback=False, job_id=job_id)

            logger.warning("Try-on job %s did not produce an image: %s", job_id, result.error)
            return FallbackResult(
                url=fallback_url,
                is_fallback=True,
                error=result.error or "Generation failed",
                job_id=job_id,
            )
        except Exception as e:
            logger.error("Unexpected try-on error: %s", e, exc_info=True)
            return FallbackResult(
                url=fallback_url,
                is_fallback=True,
                error="Unexpected error during generation",
                job_id=job_id,
            )
