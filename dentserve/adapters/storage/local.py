"""Filesystem storage backend for local development."""

from __future__ import annotations

import asyncio
from pathlib import Path

from dentserve.adapters.storage.base import AbstractImageStorage, StoredImage, object_key


class LocalImageStorage(AbstractImageStorage):
    """Writes images under a directory served as static files."""

    def __init__(self, root: str | Path, public_base_url: str = "/static") -> None:
        self._root = Path(root)
        self._public_base_url = public_base_url.rstrip("/")

    async def upload(
        self,
        data: bytes,
        *,
        folder: str,
        name: str,
        content_type: str,
    ) -> StoredImage:
        key = object_key(folder, name, content_type)
        path = self._root / key
        await asyncio.to_thread(self._write, path, data)
        return StoredImage(public_id=key, url=f"{self._public_base_url}/{key}")

    async def delete(self, public_id: str) -> None:
        path = self._root / public_id
        await asyncio.to_thread(path.unlink, missing_ok=True)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
