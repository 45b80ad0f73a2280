"""Ways of handing a queued try-on job to the generation worker."""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

import httpx

from tailorhub.config import settings
from tailorhub.db.records import RecordStore
from tailorhub.errors import GenerationFailure, TailorHubError, TransientIOError, ValidationError
from tailorhub.jobs.dispatcher import JobDispatcher
from tailorhub.tryon.models import TryOnJob, TryOnStatus

logger = logging.getLogger(__name__)


class LocalWorkerInvoker:
    """Runs the worker in this process through a JobDispatcher."""

    def __init__(self, dispatcher: JobDispatcher):
        self._dispatcher = dispatcher

    async def invoke(self, job: TryOnJob) -> None:
        if not self._dispatcher.running:
            raise TransientIOError("Try-on worker is not running")
        await self._dispatcher.submit(job)


class EdgeFunctionInvoker:
    """Generates previews with the deployed `tryon-generate` edge function.

    The function takes {order_id, customer_photo_url, style_image_url} and
    answers synchronously with {job_id, output_url}, or {error} on failure.
    invoke() returns as soon as the call is started; the answer is copied
    onto our own job row so the orchestrator polls it like any other job.

    Usage:
        invoker = EdgeFunctionInvoker(records)
        await invoker.invoke(job)
        ...
        await invoker.join()  # on shutdown
    """

    def __init__(
        self,
        records: RecordStore,
        function_name: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._records = records
        self.function_name = function_name or settings.tryon_function_name
        self.base_url = (base_url if base_url is not None else settings.supabase_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.supabase_service_role_key
        self.timeout = timeout if timeout is not None else settings.tryon_function_timeout_seconds
        self._client = client
        self._tasks: Set[asyncio.Task] = set()

    @property
    def url(self) -> str:
        return f"{self.base_url}/functions/v1/{self.function_name}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "apikey": self.api_key,
            "Content-Type": "application/json",
        }

    async def invoke(self, job: TryOnJob) -> None:
        if not (self.base_url and self.api_key):
            raise TransientIOError(f"Could not reach {self.function_name}: Supabase is not configured")

        task = asyncio.create_task(self._run(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def join(self) -> None:
        """Wait for every call already started."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, job: TryOnJob) -> None:
        try:
            await self._records.update_job(job.id, {"status": TryOnStatus.PROCESSING.value})
        except ValidationError:
            logger.info("Try-on job %s already finished, skipping", job.id)
            return
        except TailorHubError as e:
            logger.warning("[%s] Could not mark job processing: %s", job.id, e)

        try:
            output_url = await self._call(job)
        except TailorHubError as e:
            await self._finish(job.id, TryOnStatus.FAILED, error_msg=e.message)
            return
        except Exception as e:
            logger.error("[%s] Edge function call crashed: %s", job.id, e, exc_info=True)
            await self._finish(job.id, TryOnStatus.FAILED, error_msg="AI generation failed")
            return

        await self._finish(job.id, TryOnStatus.DONE, output_url=output_url)

    async def _call(self, job: TryOnJob) -> str:
        body: Dict[str, Any] = {
            "order_id": job.order_id,
            "customer_photo_url": job.customer_photo_url,
            "style_image_url": job.style_photo_url,
        }
        if job.measurement_data:
            body["measurements"] = job.measurement_data

        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            response = await client.post(self.url, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("[%s] %s unreachable: %s", job.id, self.function_name, e)
            raise TransientIOError(f"Could not reach {self.function_name}") from e
        finally:
            if self._client is None:
                await client.aclose()

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error:
            error = payload.get("error") if isinstance(payload, dict) else None
            logger.warning("[%s] %s answered %s: %s",
                           job.id, self.function_name, response.status_code, error)
            raise GenerationFailure(error or "AI generation failed")

        output_url = payload.get("output_url") if isinstance(payload, dict) else None
        if not output_url:
            raise GenerationFailure("AI model returned no image")
        logger.info("[%s] %s finished as remote job %s", job.id, self.function_name, payload.get("job_id"))
        return output_url

    async def _finish(self, job_id: str, status: TryOnStatus, output_url=None, error_msg=None) -> None:
        try:
            await self._records.update_job(job_id, {
                "status": status.value,
                "output_url": output_url,
                "error_msg": error_msg,
            })
        except TailorHubError as e:
            logger.error("[%s] Could not record %s outcome: %s", job_id, status.value, e)
            return
        logger.info("[%s] Try-on job finished: %s", job_id, status.value)
