from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class StoredImage:
    """Location of an image after it has been stored.

    Attributes:
        public_id: Storage key used to delete the object later.
        url: Publicly reachable URL written to the database.
    """

    public_id: str
    url: str


class AbstractImageStorage(ABC):
    """Interface for image storage backends."""

    @abstractmethod
    async def upload(
        self,
        data: bytes,
        *,
        folder: str,
        name: str,
        content_type: str,
    ) -> StoredImage:
        """Store image bytes under ``folder/name`` and return where they live.

        Raises:
            UpstreamAppError: If the backend rejects or cannot receive the object.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, public_id: str) -> None:
        """Remove a previously stored image; missing objects are ignored."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources (no-op by default)."""


def object_key(folder: str, name: str, content_type: str) -> str:
    """Build ``folder/name.ext`` from the image content type."""
    extension = CONTENT_TYPE_EXTENSIONS.get(content_type, "bin")
    return f"{folder.strip('/')}/{name}.{extension}"
