"""Try-on generation worker.

Takes a queued job, generates the preview, stores it, and writes the
outcome onto the job row exactly once: done + output_url, or failed +
error_msg.
"""

import logging

from tailorhub.config import settings
from tailorhub.db.records import RecordStore
from tailorhub.errors import TailorHubError, ValidationError
from tailorhub.storage.asset_store import AssetStoreGateway
from tailorhub.tryon.generator import ImageGenerator
from tailorhub.tryon.models import TryOnJob, TryOnStatus

logger = logging.getLogger(__name__)


class TryOnWorker:
    def __init__(self, records: RecordStore, assets: AssetStoreGateway, generator: ImageGenerator):
        self._records = records
        self._assets = assets
        self._generator = generator

    async def run(self, job: TryOnJob) -> None:
        try:
            await self._records.update_job(job.id, {"status": TryOnStatus.PROCESSING.value})
        except ValidationError:
            logger.info("Try-on job %s already finished, skipping", job.id)
            return

        try:
            output_url = await self._generate(job)
        except TailorHubError as e:
            await self._finish(job.id, TryOnStatus.FAILED, error_msg=e.message)
            return
        except Exception as e:
            logger.error("Try-on job %s crashed: %s", job.id, e, exc_info=True)
            await self._finish(job.id, TryOnStatus.FAILED, error_msg="AI generation failed")
            return

        await self._finish(job.id, TryOnStatus.DONE, output_url=output_url)

    async def _generate(self, job: TryOnJob) -> str:
        logger.info("[%s] Generating try-on for order %s", job.id, job.order_id)
        image = await self._generator.generate(
            job.customer_photo_url,
            job.style_photo_url,
            job.measurement_data,
        )

        uploaded = await self._assets.upload(
            image.data,
            bucket=settings.order_references_bucket,
            path=f"tryon/tryon-{job.id}.webp",
            content_type=image.content_type,
        )
        if uploaded.ok:
            return uploaded.url

        # Storage hiccup: the model's own URL still works for a while
        logger.warning("[%s] Could not store preview, using source URL", job.id)
        return image.source_url

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
