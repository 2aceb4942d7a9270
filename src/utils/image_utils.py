"""Image helpers shared by the API upload route and the CLI.

Dish photos straight off a phone are often 4000x3000 and several MB.  The
vision model gains nothing from that resolution, and both the storage PUT
and the model request get slower with every byte, so oversized images are
downscaled once at ingress before they ever reach the pipeline.
"""

from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from src.utils.logging import get_logger

_logger = get_logger(__name__)

# Pillow format name -> MIME type accepted by the vision model.
_FORMAT_TO_CONTENT_TYPE = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}

SUPPORTED_CONTENT_TYPES = frozenset(_FORMAT_TO_CONTENT_TYPE.values())


def detect_content_type(image_data: bytes) -> str | None:
    """Return the MIME type of *image_data*, or ``None`` if it is not a supported image.

    The decision is made from the decoded header, not from the filename or
    the client-supplied content type.
    """
    try:
        with Image.open(io.BytesIO(image_data)) as img:
            return _FORMAT_TO_CONTENT_TYPE.get(img.format or "")
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        return None


def downscale_if_oversized(image_data: bytes, max_dim: int) -> tuple[bytes, str | None]:
    """Downscale an image whose largest side exceeds *max_dim* pixels.

    Returns ``(bytes, content_type)``.  Images already within bounds come
    back untouched with ``content_type`` of ``None`` (keep the original).
    Downscaled images are re-encoded as JPEG at quality 90.
    """
    try:
        with Image.open(io.BytesIO(image_data)) as img:
            largest = max(img.size)
            if largest <= max_dim:
                return image_data, None

            scale = max_dim / largest
            # A very thin image would otherwise round one side down to zero.
            new_size = (
                max(1, int(img.size[0] * scale)),
                max(1, int(img.size[1] * scale)),
            )
            resized = img.convert("RGB").resize(new_size, Image.LANCZOS)

        buf = io.BytesIO()
        resized.save(buf, format="JPEG", quality=90)
        _logger.info(
            "image_downscaled",
            original_largest_dim=largest,
            new_size=new_size,
            original_bytes=len(image_data),
            new_bytes=buf.tell(),
        )
        return buf.getvalue(), "image/jpeg"
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        # Let the pipeline try the original; the vision call will report
        # a real failure if the bytes are unusable.
        _logger.warning("image_downscale_failed", error=str(exc))
        return image_data, None
