"""Supabase Storage backend (public bucket) over httpx."""

from __future__ import annotations

import logging

import httpx

from dentserve.adapters.storage.base import AbstractImageStorage, StoredImage, object_key
from dentserve.core.errors import UpstreamAppError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


class SupabaseImageStorage(AbstractImageStorage):
    """Stores images in a public Supabase Storage bucket."""

    def __init__(
        self,
        url: str,
        service_role_key: str,
        bucket: str,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._bucket = bucket
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={
                "apikey": service_role_key,
                "Authorization": f"Bearer {service_role_key}",
            },
        )

    def public_url(self, key: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self._bucket}/{key}"

    async def upload(
        self,
        data: bytes,
        *,
        folder: str,
        name: str,
        content_type: str,
    ) -> StoredImage:
        key = object_key(folder, name, content_type)
        try:
            response = await self._client.post(
                f"/storage/v1/object/{self._bucket}/{key}",
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "true"},
            )
        except httpx.TransportError as exc:
            raise UpstreamUnavailableError(
                code="storage_unavailable",
                message="Image storage is temporarily unavailable",
            ) from exc

        if response.is_error:
            logger.error(
                "storage.upload_rejected",
                extra={"status": response.status_code, "key": key},
            )
            raise UpstreamAppError(
                code="storage_error",
                message="Failed to store image",
                details={"upstream_status": response.status_code},
            )

        logger.info("storage.uploaded", extra={"key": key, "size_bytes": len(data)})
        return StoredImage(public_id=key, url=self.public_url(key))

    async def delete(self, public_id: str) -> None:
        try:
            response = await self._client.delete(f"/storage/v1/object/{self._bucket}/{public_id}")
        except httpx.TransportError as exc:
            raise UpstreamUnavailableError(
                code="storage_unavailable",
                message="Image storage is temporarily unavailable",
            ) from exc
        if response.is_error and response.status_code != 404:
            raise UpstreamAppError(
                code="storage_error",
                message="Failed to delete image",
                details={"upstream_status": response.status_code},
            )

    async def aclose(self) -> None:
        await self._client.aclose()
