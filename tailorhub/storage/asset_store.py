"""Asset store gateway: prepared images in, durable URLs out.

Writes are upserts (same bucket/path overwrites). Nothing here retries;
callers decide whether a failed upload is worth another attempt.
"""

import logging
import time
import uuid
from typing import Optional, Protocol

from pydantic import BaseModel
from supabase import Client

from tailorhub.config import settings
from tailorhub.db.supabase_client import run_sync
from tailorhub.errors import NotAuthenticatedError, TransientIOError
from tailorhub.imaging.preparation import (
    ImagePreparationError,
    ImageUpload,
    prepare_upload,
)

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    async def put(self, bucket: str, path: str, data: bytes, content_type: str) -> None: ...

    async def public_url(self, bucket: str, path: str) -> str: ...

    async def delete(self, bucket: str, path: str) -> None:
        """Delete an object. A missing object is not an error."""
        ...


class SupabaseObjectStore:
    """ObjectStore backed by Supabase Storage."""

    def __init__(self, client: Client):
        self._client = client

    async def put(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        bucket_api = self._client.storage.from_(bucket)
        try:
            await run_sync(
                bucket_api.upload,
                path,
                data,
                {"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            raise TransientIOError(f"Storage upload failed: {e}") from e

    async def public_url(self, bucket: str, path: str) -> str:
        return self._client.storage.from_(bucket).get_public_url(path)

    async def delete(self, bucket: str, path: str) -> None:
        bucket_api = self._client.storage.from_(bucket)
        try:
            await run_sync(bucket_api.remove, [path])
        except Exception as e:
            raise TransientIOError(f"Storage delete failed: {e}") from e


class UploadResult(BaseModel):
    url: str = ""
    path: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.url)


class RemoveResult(BaseModel):
    success: bool
    error: Optional[str] = None


class AssetStoreGateway:
    def __init__(self, store: ObjectStore):
        self._store = store

    async def upload(
        self,
        data: bytes,
        bucket: str,
        path: str,
        content_type: str = "image/webp",
    ) -> UploadResult:
        try:
            await self._store.put(bucket, path, data, content_type)
            url = await self._store.public_url(bucket, path)
        except TransientIOError as e:
            logger.warning("Upload to %s/%s failed: %s", bucket, path, e)
            return UploadResult(error="Failed to upload image")

        logger.info("Uploaded %d bytes to %s/%s", len(data), bucket, path)
        return UploadResult(url=url, path=path)

    async def remove(self, bucket: str, path: str) -> RemoveResult:
        try:
            await self._store.delete(bucket, path)
        except TransientIOError as e:
            logger.warning("Delete of %s/%s failed: %s", bucket, path, e)
            return RemoveResult(success=False, error="Failed to delete image")
        return RemoveResult(success=True)

    async def _prepare_and_upload(
        self,
        image: ImageUpload,
        user_id: Optional[str],
        bucket: str,
        name: str,
        max_bytes: Optional[int],
        require_quality: bool,
    ) -> UploadResult:
        if not user_id:
            return UploadResult(error=NotAuthenticatedError().message)

        try:
            # Decoding and re-encoding is CPU bound; keep it off the event loop
            prepared = await run_sync(
                prepare_upload, image, max_bytes=max_bytes, require_quality=require_quality
            )
        except ImagePreparationError as e:
            return UploadResult(error=e.message)

        return await self.upload(
            prepared.data,
            bucket=bucket,
            path=f"{user_id}/{name}.webp",
            content_type=prepared.content_type,
        )

    async def upload_customer_photo(
        self, image: ImageUpload, user_id: Optional[str], max_bytes: Optional[int] = None
    ) -> UploadResult:
        """Full-body customer photo. Private bucket, resolution-checked."""
        return await self._prepare_and_upload(
            image,
            user_id,
            bucket=settings.customer_photos_bucket,
            name=f"customer-photo-{int(time.time() * 1000)}",
            max_bytes=max_bytes,
            require_quality=True,
        )

    async def upload_style_photo(
        self, image: ImageUpload, user_id: Optional[str], max_bytes: Optional[int] = None
    ) -> UploadResult:
        """Style / inspiration photo. Public bucket, resolution-checked."""
        return await self._prepare_and_upload(
            image,
            user_id,
            bucket=settings.order_references_bucket,
            name=f"style-photo-{int(time.time() * 1000)}",
            max_bytes=max_bytes,
            require_quality=True,
        )

    async def upload_reference_photo(
        self, image: ImageUpload, user_id: Optional[str], max_bytes: Optional[int] = None
    ) -> UploadResult:
        """Extra reference photo attached to an order. Any resolution."""
        return await self._prepare_and_upload(
            image,
            user_id,
            bucket=settings.order_references_bucket,
            name=f"reference-{uuid.uuid4()}",
            max_bytes=max_bytes,
            require_quality=False,
        )
