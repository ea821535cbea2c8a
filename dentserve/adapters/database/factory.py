"""Factory for the database platform client."""

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.adapters.database.supabase_client import SupabaseClient
from dentserve.core.config import settings
from dentserve.core.errors import ConfigurationAppError


def create_database_client() -> AbstractDatabaseClient:
    """Build the Supabase client from settings.

    Raises:
        ConfigurationAppError: If neither an anon nor a service-role key is set.
    """
    cfg = settings.supabase
    if not (cfg.anon_key or cfg.service_role_key):
        raise ConfigurationAppError(
            code="database_not_configured",
            message="SUPABASE_ANON_KEY or SUPABASE_SERVICE_ROLE_KEY must be set",
        )
    return SupabaseClient(
        url=cfg.url,
        anon_key=cfg.anon_key,
        service_role_key=cfg.service_role_key,
        timeout_seconds=cfg.timeout_seconds,
    )
