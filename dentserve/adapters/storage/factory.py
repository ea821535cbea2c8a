"""Factory for image storage backends."""

from dentserve.adapters.storage.base import AbstractImageStorage
from dentserve.adapters.storage.local import LocalImageStorage
from dentserve.adapters.storage.supabase_storage import SupabaseImageStorage
from dentserve.core.config import settings
from dentserve.core.errors import ConfigurationAppError


def create_image_storage() -> AbstractImageStorage:
    """Instantiate the storage backend named by ``STORAGE_BACKEND``.

    Raises:
        ConfigurationAppError: On unknown backends or missing credentials.
    """
    backend = settings.storage.backend.lower()

    if backend == "local":
        return LocalImageStorage(
            root=settings.storage.local_dir,
            public_base_url=settings.storage.public_base_url,
        )

    if backend == "supabase":
        if not settings.supabase.service_role_key:
            raise ConfigurationAppError(
                code="storage_missing_key",
                message="Supabase storage requires SUPABASE_SERVICE_ROLE_KEY",
            )
        return SupabaseImageStorage(
            url=settings.supabase.url,
            service_role_key=settings.supabase.service_role_key,
            bucket=settings.storage.bucket,
        )

    raise ConfigurationAppError(
        code="storage_unknown_backend",
        message=f"Unknown storage backend: '{backend}'. Supported backends: local, supabase",
    )
