"""Photo upload API.

  POST /uploads/customer   - full-body customer photo (private bucket)
  POST /uploads/style      - style / inspiration photo
  POST /uploads/reference  - extra reference photo for an order

Each upload is validated, resolution-checked where it matters, re-encoded to
WebP and stored. The response carries the URL to put on the order.
"""

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from tailorhub.auth.supabase_auth import verify_jwt
from tailorhub.config import settings
from tailorhub.imaging.preparation import ImageUpload
from tailorhub.services import Services, get_services

router = APIRouter()

_CHUNK_BYTES = 1024 * 1024


async def _read_limited(file: UploadFile, max_bytes: int) -> bytes:
    """Read the upload in 1 MB chunks, stopping as soon as it is too large."""
    chunks = []
    total = 0
    while True:
        chunk = await file.read(_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File size exceeds {max_bytes // (1024 * 1024)}MB. Please choose a smaller image.",
            )
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/uploads/{kind}")
async def upload_photo(
    kind: str,
    file: UploadFile = File(...),
    wizard: bool = Query(False, description="Apply the stricter in-wizard size ceiling"),
    user_id: str = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    """Validate, compress and store a photo. Returns {url, path}."""
    handlers = {
        "customer": services.assets.upload_customer_photo,
        "style": services.assets.upload_style_photo,
        "reference": services.assets.upload_reference_photo,
    }
    handler = handlers.get(kind)
    if handler is None:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown upload kind '{kind}'. Valid: {list(handlers)}",
        )

    max_bytes = settings.wizard_max_upload_bytes if wizard else settings.max_upload_bytes
    data = await _read_limited(file, max_bytes)
    image = ImageUpload(
        data=data,
        content_type=file.content_type or "",
        filename=file.filename or "upload",
    )

    result = await handler(image, user_id, max_bytes=max_bytes)
    if result.error:
        status = 502 if result.error == "Failed to upload image" else 400
        raise HTTPException(status_code=status, detail=result.error)

    return {"url": result.url, "path": result.path}
