"""Image validation utilities for upload security.

Checks file signatures (magic numbers) so a renamed file cannot pass as an
image just by claiming an image content type.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional, cast

logger = logging.getLogger(__name__)

ImageType = Literal["jpeg", "png", "webp"]

ALLOWED_IMAGE_MIME_TYPES: frozenset[str] = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/webp"}
)


def get_image_type_from_mime(mime_type: str | None) -> Optional[ImageType]:
    """Map an upload content type to an internal image type, or None if unsupported."""
    mime_map = {
        "image/jpeg": "jpeg",
        "image/jpg": "jpeg",
        "image/png": "png",
        "image/webp": "webp",
    }
    return cast(Optional[ImageType], mime_map.get((mime_type or "").lower()))


def detect_image_type(data: bytes) -> Optional[ImageType]:
    if data.startswith(b"\xff\xd8\xff"):
        return "jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    # RIFF....WEBP
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


def validate_image_signature(data: bytes, expected_type: ImageType) -> bool:
    """Return True when the bytes carry the signature of ``expected_type``."""
    actual = detect_image_type(data)
    if actual == expected_type:
        return True

    logger.warning(
        "image_signature.invalid",
        extra={
            "expected_type": expected_type,
            "detected_type": actual,
            "actual_prefix": data[:12].hex() if data else "EMPTY",
        },
    )
    return False
