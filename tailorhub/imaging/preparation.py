"""Photo preparation before upload: validation, resolution check, WebP compression.

Usage:
    image = ImageUpload(data=raw_bytes, content_type="image/jpeg")

    check = validate(image, max_bytes=settings.wizard_max_upload_bytes)
    if not check.valid:
        ...  # check.error is safe to show to the user

    prepared = compress(image)  # PreparedImage, always WebP
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError
from pydantic import BaseModel

from tailorhub.config import settings
from tailorhub.errors import ValidationError

logger = logging.getLogger(__name__)

ACCEPTED_CONTENT_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
OUTPUT_CONTENT_TYPE = "image/webp"


class ImagePreparationError(ValidationError):
    """The image could not be validated, decoded or re-encoded."""


@dataclass
class ImageUpload:
    """Raw bytes of a user-supplied photo plus the media type the client declared."""
    data: bytes
    content_type: str
    filename: str = "upload"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class PreparedImage:
    data: bytes
    width: int
    height: int
    content_type: str = OUTPUT_CONTENT_TYPE


class ImageCheck(BaseModel):
    valid: bool
    error: Optional[str] = None


class QualityCheck(BaseModel):
    acceptable: bool
    message: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


def _format_mb(num_bytes: int) -> str:
    return f"{num_bytes / (1024 * 1024):g}MB"


def validate(image: ImageUpload, max_bytes: Optional[int] = None) -> ImageCheck:
    """Check media type and size. Does not decode the image."""
    if max_bytes is None:
        max_bytes = settings.max_upload_bytes

    if (image.content_type or "").lower() not in ACCEPTED_CONTENT_TYPES:
        return ImageCheck(
            valid=False,
            error="Invalid file format. Please upload JPEG, PNG, or WebP images.",
        )

    if image.size > max_bytes:
        return ImageCheck(
            valid=False,
            error=f"File size exceeds {_format_mb(max_bytes)}. Please choose a smaller image.",
        )

    return ImageCheck(valid=True)


def read_dimensions(data: bytes) -> Tuple[int, int]:
    """Return (width, height) after applying EXIF orientation."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            orientation = img.getexif().get(0x0112, 1)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ImagePreparationError("Could not read image") from e

    # Orientations 5-8 rotate by 90 degrees
    if orientation in (5, 6, 7, 8):
        width, height = height, width
    return width, height


def check_quality(
    image: ImageUpload,
    min_width: Optional[int] = None,
    min_height: Optional[int] = None,
) -> QualityCheck:
    """Reject photos below the minimum resolution, independent of file size."""
    if min_width is None:
        min_width = settings.min_image_width
    if min_height is None:
        min_height = settings.min_image_height

    try:
        width, height = read_dimensions(image.data)
    except ImagePreparationError:
        return QualityCheck(acceptable=False, message="Could not check image quality")

    if width < min_width or height < min_height:
        return QualityCheck(
            acceptable=False,
            message=f"Image resolution too low. Minimum {min_width}x{min_height}px required.",
            width=width,
            height=height,
        )

    return QualityCheck(acceptable=True, width=width, height=height)


def fit_within(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """Scale (width, height) down into the bounding box, keeping aspect ratio.

    Never upscales.
    """
    scale = min(1.0, max_width / width, max_height / height)
    if scale >= 1.0:
        return width, height
    new_w = max(1, min(max_width, round(width * scale)))
    new_h = max(1, min(max_height, round(height * scale)))
    return new_w, new_h


def compress(
    image: ImageUpload,
    max_width: Optional[int] = None,
    max_height: Optional[int] = None,
    quality: Optional[float] = None,
) -> PreparedImage:
    """Re-encode as WebP constrained to max_width x max_height.

    quality is a 0-1 factor. Same input and settings always give the same bytes.
    Raises ImagePreparationError when the image cannot be decoded or encoded.
    """
    if max_width is None:
        max_width = settings.compress_max_width
    if max_height is None:
        max_height = settings.compress_max_height
    if max_width <= 0 or max_height <= 0:
        raise ImagePreparationError(f"Size limit must be positive, got {max_width}x{max_height}")
    if quality is None:
        quality = settings.compress_quality
    if not 0.0 < quality <= 1.0:
        raise ImagePreparationError(f"Quality must be in (0, 1], got {quality}")

    try:
        with Image.open(io.BytesIO(image.data)) as src:
            img = ImageOps.exif_transpose(src)
            has_alpha = img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info
            img = img.convert("RGBA" if has_alpha else "RGB")

            target = fit_within(img.width, img.height, max_width, max_height)
            if target != img.size:
                img = img.resize(target, Image.LANCZOS)

            buffer = io.BytesIO()
            img.save(buffer, format="WEBP", quality=round(quality * 100), method=4)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.warning("Compression failed for %s: %s", image.filename, e)
        raise ImagePreparationError("Could not compress image") from e

    return PreparedImage(data=buffer.getvalue(), width=target[0], height=target[1])


def prepare_upload(
    image: ImageUpload,
    max_bytes: Optional[int] = None,
    require_quality: bool = True,
) -> PreparedImage:
    """validate -> check_quality -> compress. Raises with the first failing reason."""
    check = validate(image, max_bytes=max_bytes)
    if not check.valid:
        raise ImagePreparationError(check.error)

    if require_quality:
        quality = check_quality(image)
        if not quality.acceptable:
            raise ImagePreparationError(quality.message)

    return compress(image)
