"""Image preparation for the vision model."""

from io import BytesIO
from typing import Final, Literal, TypeAlias, TypeGuard, get_args

from PIL import Image

from plan_analysis.logging import get_logger

logger = get_logger(__name__)

# Limit decompression bomb threshold for untrusted image bytes.
Image.MAX_IMAGE_PIXELS = 50_000_000

# Media types accepted by the Claude vision API
ImageMediaType: TypeAlias = Literal["image/jpeg", "image/png", "image/gif", "image/webp"]
VALID_MEDIA_TYPES: Final[tuple[str, ...]] = get_args(ImageMediaType)

# Anthropic recommends <=1568px on the longest edge
MAX_IMAGE_DIMENSION: Final = 1568

_PIL_FORMAT_MEDIA_TYPES: Final[dict[str, ImageMediaType]] = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


def is_valid_media_type(value: str) -> TypeGuard[ImageMediaType]:
    """Check if a string is a media type the vision API accepts."""
    return value in VALID_MEDIA_TYPES


def prepare_image(
    data: bytes, mime_type: str, max_dim: int = MAX_IMAGE_DIMENSION
) -> tuple[bytes, ImageMediaType]:
    """Downscale a plan image and settle on a media type the API accepts.

    Plans are often scanned at high resolution; the longest edge is reduced to
    ``max_dim``. Formats the API does not accept (BMP, TIFF...) are re-encoded
    as PNG. Bytes Pillow cannot decode are passed through unchanged and the
    declared type is kept when valid, otherwise JPEG is assumed.
    """
    try:
        img = Image.open(BytesIO(data))
        fmt = (img.format or "").upper()
        media_type = _PIL_FORMAT_MEDIA_TYPES.get(fmt)
        w, h = img.size
        if media_type is not None and w <= max_dim and h <= max_dim:
            return data, media_type

        if w > max_dim or h > max_dim:
            scale = max_dim / max(w, h)
            img = img.resize((int(w * scale), int(h * scale)), Image.Resampling.LANCZOS)

        out_fmt = fmt if media_type is not None else "PNG"
        if out_fmt == "JPEG" and img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        buf = BytesIO()
        img.save(buf, format=out_fmt, quality=85)
        return buf.getvalue(), _PIL_FORMAT_MEDIA_TYPES[out_fmt]
    except Exception:
        logger.debug("image_prepare_failed", mime_type=mime_type, exc_info=True)
        if is_valid_media_type(mime_type):
            return data, mime_type
        return data, "image/jpeg"
