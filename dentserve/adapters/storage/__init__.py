"""Image storage adapters (Supabase Storage or local filesystem)."""

from dentserve.adapters.storage.base import AbstractImageStorage, StoredImage
from dentserve.adapters.storage.factory import create_image_storage
from dentserve.adapters.storage.local import LocalImageStorage
from dentserve.adapters.storage.supabase_storage import SupabaseImageStorage

__all__ = [
    "AbstractImageStorage",
    "LocalImageStorage",
    "StoredImage",
    "SupabaseImageStorage",
    "create_image_storage",
]
