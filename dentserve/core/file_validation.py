"""Size-limited reading of multipart uploads."""
from __future__ import annotations

import logging

from fastapi import UploadFile

from dentserve.core.errors import PayloadTooLargeAppError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def _too_large(max_bytes: int) -> PayloadTooLargeAppError:
    max_mb = max_bytes / (1024 * 1024)
    label = f"{max_mb:g}MB"
    return PayloadTooLargeAppError(
        code="file_too_large",
        message=f"File too large. Maximum size: {label}",
        details={"max_bytes": max_bytes},
    )


async def read_upload_file_limited(file: UploadFile, max_bytes: int) -> bytes:
    """Read an uploaded file in chunks, refusing anything over ``max_bytes``.

    Uses ``file.size`` from the multipart headers when present so obvious
    oversize uploads are rejected before any read.

    Raises:
        PayloadTooLargeAppError: If the file exceeds ``max_bytes``.
    """
    file_size = getattr(file, "size", None)
    if file_size is not None and file_size > max_bytes:
        logger.warning(
            "file_validation.rejected_by_header",
            extra={"file_size": file_size, "max_bytes": max_bytes},
        )
        raise _too_large(max_bytes)

    size = 0
    chunks: list[bytes] = []
    while True:
        chunk = await file.read(_CHUNK_SIZE)
        if not chunk:
            break

        size += len(chunk)
        if size > max_bytes:
            logger.warning(
                "file_validation.rejected_by_chunked_read",
                extra={"size": size, "max_bytes": max_bytes},
            )
            raise _too_large(max_bytes)
        chunks.append(chunk)

    return b"".join(chunks)
