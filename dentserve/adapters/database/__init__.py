"""Database platform adapter layer."""

from dentserve.adapters.database.base import AbstractDatabaseClient, SelectResult
from dentserve.adapters.database.factory import create_database_client
from dentserve.adapters.database.supabase_client import SupabaseClient

__all__ = [
    "AbstractDatabaseClient",
    "SelectResult",
    "SupabaseClient",
    "create_database_client",
]
