"""Image uploads for profiles, clinics and doctors, with cancellation.

An upload is registered under its id for as long as it is in flight. A
cancel request sets the upload's event; the upload checks the event before
storing, races it while storing, and checks it again afterwards, deleting
the stored object if the cancel arrived too late to stop the transfer.
A client disconnect cancels the upload the same way when the caller
passes a disconnect check.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from fastapi import UploadFile

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.adapters.storage.base import AbstractImageStorage, StoredImage
from dentserve.core.errors import (
    AppError,
    AuthorizationAppError,
    NotFoundAppError,
    PersistenceAppError,
    UploadCancelledError,
    ValidationAppError,
)
from dentserve.core.file_validation import read_upload_file_limited
from dentserve.schemas.auth import CurrentUser
from dentserve.services.staff_lookup import doctor_works_at_clinic, get_staff_clinic_id
from dentserve.utils.file_validators import (
    ALLOWED_IMAGE_MIME_TYPES,
    get_image_type_from_mime,
    validate_image_signature,
)

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass(frozen=True)
class ImageKind:
    name: str
    folder: str
    table: str
    column: str
    max_bytes: int
    label: str


UPLOAD_KINDS: dict[str, ImageKind] = {
    "profile": ImageKind("profile", "profiles", "user_profiles", "profile_image_url", 5 * MB, "Profile"),
    "clinic": ImageKind("clinic", "clinics", "clinics", "image_url", 10 * MB, "Clinic"),
    "doctor": ImageKind("doctor", "doctors", "doctors", "image_url", 5 * MB, "Doctor"),
}


@dataclass
class ActiveUpload:
    upload_id: str
    owner_id: str
    kind: str
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)


class UploadRegistry:
    """In-flight uploads keyed by upload id (per process)."""

    def __init__(self) -> None:
        self._active: dict[str, ActiveUpload] = {}

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, upload_id: object) -> bool:
        return upload_id in self._active

    def register(self, upload_id: str, owner_id: str, kind: str) -> ActiveUpload:
        if upload_id in self._active:
            raise ValidationAppError(
                code="upload_in_progress",
                message="An upload with this ID is already in progress",
                details={"upload_id": upload_id},
            )
        active = ActiveUpload(upload_id=upload_id, owner_id=owner_id, kind=kind)
        self._active[upload_id] = active
        return active

    def release(self, active: ActiveUpload) -> None:
        if self._active.get(active.upload_id) is active:
            del self._active[active.upload_id]

    def cancel(self, upload_id: str, owner_id: str, kind: str | None = None) -> bool:
        """Signal cancellation. False when no matching upload of this owner exists."""
        active = self._active.get(upload_id)
        if active is None or active.owner_id != owner_id:
            return False
        if kind is not None and active.kind != kind:
            return False
        active.cancelled.set()
        del self._active[upload_id]
        return True


def _cancelled(upload_id: str) -> UploadCancelledError:
    return UploadCancelledError(
        code="upload_cancelled",
        message="Upload cancelled",
        details={"upload_id": upload_id},
    )


class ImageUploadService:
    def __init__(
        self,
        db: AbstractDatabaseClient,
        storage: AbstractImageStorage,
        registry: UploadRegistry,
        *,
        max_upload_bytes: int = 10 * MB,
        disconnect_poll_seconds: float = 0.25,
    ) -> None:
        self._db = db
        self._storage = storage
        self._registry = registry
        self._max_upload_bytes = max_upload_bytes
        self._disconnect_poll_seconds = disconnect_poll_seconds

    @property
    def registry(self) -> UploadRegistry:
        return self._registry

    def limit_for(self, kind: ImageKind) -> int:
        return min(kind.max_bytes, self._max_upload_bytes)

    def cancel(self, user: CurrentUser, upload_id: str, kind: str | None = None) -> dict[str, Any]:
        """Cancel an in-flight upload owned by ``user``.

        Raises:
            NotFoundAppError: If no such upload is in flight for this user.
        """
        if not self._registry.cancel(upload_id, user.user_id, kind):
            raise NotFoundAppError(
                code="upload_not_found",
                message="Upload not found",
                details={"upload_id": upload_id},
            )
        logger.info("upload.cancel_requested", extra={"upload_id": upload_id, "kind": kind})
        return {"success": True, "message": "Upload cancelled", "uploadId": upload_id}

    async def upload(
        self,
        user: CurrentUser,
        kind_name: str,
        file: UploadFile | None,
        *,
        upload_id: str,
        target_id: str | None = None,
        is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    ) -> dict[str, Any]:
        """Validate, store and record an image for ``kind_name``.

        ``is_disconnected`` is polled while the upload is in flight; once it
        returns True the upload is cancelled.

        Returns:
            Response payload with ``imageUrl`` and ``uploadId``.

        Raises:
            ValidationAppError: Missing file, bad type or missing target id.
            PayloadTooLargeAppError: File over the per-kind limit.
            AuthorizationAppError: Caller may not change the target.
            UploadCancelledError: The upload was cancelled while in flight.
            PersistenceAppError: The database row could not be updated.

        Every AppError raised here carries ``upload_id`` in its details and
        an ``X-Upload-Id`` response header.
        """
        kind = UPLOAD_KINDS[kind_name]
        active = self._registry.register(upload_id, user.user_id, kind.name)
        watcher = None
        if is_disconnected is not None:
            watcher = asyncio.ensure_future(self._watch_disconnect(active, is_disconnected))
        try:
            return await self._process(user, kind, file, active, target_id)
        except AppError as exc:
            exc.details = {**(exc.details or {}), "upload_id": upload_id}
            exc.headers = {**(exc.headers or {}), "X-Upload-Id": upload_id}
            raise
        finally:
            if watcher is not None:
                watcher.cancel()
            self._registry.release(active)

    async def _process(
        self,
        user: CurrentUser,
        kind: ImageKind,
        file: UploadFile | None,
        active: ActiveUpload,
        target_id: str | None,
    ) -> dict[str, Any]:
        upload_id = active.upload_id
        started = time.perf_counter()
        if file is None or not file.filename:
            raise ValidationAppError(code="no_file", message="No file uploaded")

        content_type = (file.content_type or "").lower()
        image_type = get_image_type_from_mime(content_type)
        if content_type not in ALLOWED_IMAGE_MIME_TYPES or image_type is None:
            raise ValidationAppError(
                code="invalid_file_type",
                message="Invalid file type. Only JPEG, PNG, and WebP are allowed.",
                details={"content_type": content_type},
            )

        data = await read_upload_file_limited(file, self.limit_for(kind))
        if not data:
            raise ValidationAppError(code="no_file", message="No file uploaded")
        if not validate_image_signature(data, image_type):
            raise ValidationAppError(
                code="invalid_file_content",
                message="File content does not match its declared image type",
                details={"content_type": content_type},
            )

        row_id = await self._authorize(user, kind, target_id)

        if active.cancelled.is_set():
            raise _cancelled(upload_id)

        logger.info(
            "upload.started",
            extra={"upload_id": upload_id, "kind": kind.name, "size": len(data), "user_id": user.user_id},
        )
        name_owner = user.user_id if kind.name == "profile" else row_id
        stored = await self._race_cancel(
            self._storage.upload(
                data,
                folder=kind.folder,
                name=f"{kind.name}_{name_owner}_{int(time.time() * 1000)}",
                content_type=content_type,
            ),
            active,
        )

        if active.cancelled.is_set():
            await self._discard(stored, upload_id)
            raise _cancelled(upload_id)

        await self._record(kind, row_id, stored, upload_id)

        logger.info(
            "upload.completed",
            extra={
                "upload_id": upload_id,
                "kind": kind.name,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return self._response(user, kind, row_id, stored, upload_id)

    async def _authorize(self, user: CurrentUser, kind: ImageKind, target_id: str | None) -> str:
        """Return the id of the row the image belongs to, or raise."""
        if kind.name == "profile":
            return user.user_profile_id

        if not target_id:
            raise ValidationAppError(
                code="missing_target_id",
                message=f"{kind.label} ID is required",
            )
        if user.role == "admin":
            return target_id
        if user.role != "staff":
            raise AuthorizationAppError(
                code="insufficient_role",
                message="Access denied: staff or admin required",
            )

        staff_clinic = await get_staff_clinic_id(self._db, user)
        if kind.name == "clinic":
            allowed = staff_clinic is not None and staff_clinic == target_id
        else:
            allowed = staff_clinic is not None and await doctor_works_at_clinic(
                self._db, target_id, staff_clinic
            )
        if not allowed:
            logger.warning(
                "upload.ownership_denied",
                extra={"kind": kind.name, "target_id": target_id, "user_id": user.user_id},
            )
            raise AuthorizationAppError(
                code="not_owner",
                message=f"Access denied: you cannot update this {kind.name}",
            )
        return target_id

    async def _race_cancel(self, operation: Awaitable[StoredImage], active: ActiveUpload) -> StoredImage:
        store_task = asyncio.ensure_future(operation)
        cancel_task = asyncio.ensure_future(active.cancelled.wait())
        try:
            await asyncio.wait({store_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()

        if not store_task.done():
            store_task.cancel()
            try:
                await store_task
            except asyncio.CancelledError:
                logger.info("upload.transfer_aborted", extra={"upload_id": active.upload_id})
            raise _cancelled(active.upload_id)

        return store_task.result()

    async def _watch_disconnect(
        self, active: ActiveUpload, is_disconnected: Callable[[], Awaitable[bool]]
    ) -> None:
        while not active.cancelled.is_set():
            if await is_disconnected():
                logger.info("upload.client_disconnected", extra={"upload_id": active.upload_id})
                active.cancelled.set()
                return
            await asyncio.sleep(self._disconnect_poll_seconds)

    async def _record(self, kind: ImageKind, row_id: str, stored: StoredImage, upload_id: str) -> None:
        values = {
            kind.column: stored.url,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            updated = await self._db.update(kind.table, values, filters={"id": row_id})
        except AppError as exc:
            logger.error(
                "upload.db_update_failed",
                extra={"upload_id": upload_id, "table": kind.table, "error": exc.message},
            )
            updated = None

        if not updated:
            await self._discard(stored, upload_id)
            raise PersistenceAppError(
                code="db_update_failed",
                message=f"Failed to update {kind.name} in database",
                details={"upload_id": upload_id},
            )

    async def _discard(self, stored: StoredImage, upload_id: str) -> None:
        try:
            await self._storage.delete(stored.public_id)
        except AppError as exc:
            logger.error(
                "upload.cleanup_failed",
                extra={"upload_id": upload_id, "public_id": stored.public_id, "error": exc.message},
            )
        else:
            logger.info("upload.cleaned_up", extra={"upload_id": upload_id, "public_id": stored.public_id})

    @staticmethod
    def _response(
        user: CurrentUser, kind: ImageKind, row_id: str, stored: StoredImage, upload_id: str
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": True,
            "imageUrl": stored.url,
            "message": f"{kind.label} image updated successfully",
            "uploadId": upload_id,
        }
        if kind.name == "profile":
            body["user"] = {"id": user.user_id, "name": user.full_name}
        else:
            body[f"{kind.name}Id"] = row_id
        return body
