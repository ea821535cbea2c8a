"""Interface for the managed database platform.

All persistent state and stored procedures live on the platform; services
only talk to it through this abstraction so tests can substitute a fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SelectResult:
    """Rows returned by a table read plus the exact total when requested."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    count: int | None = None


class AbstractDatabaseClient(ABC):
    """Operations the service needs from the database platform."""

    @abstractmethod
    async def get_auth_user(self, access_token: str) -> dict[str, Any] | None:
        """Resolve an access token to the auth user, or None if it is invalid."""
        raise NotImplementedError

    @abstractmethod
    async def fetch_user_profile(self, auth_user_id: str) -> dict[str, Any] | None:
        """Load the active application user joined with its profile row."""
        raise NotImplementedError

    @abstractmethod
    async def rpc(
        self,
        name: str,
        params: dict[str, Any] | None = None,
        *,
        access_token: str | None = None,
    ) -> Any:
        """Invoke a stored procedure and return its decoded JSON result.

        Args:
            name: Procedure name.
            params: Named parameters (``p_*``) passed as a JSON object.
            access_token: Run as this user; None runs with the service role.
        """
        raise NotImplementedError

    @abstractmethod
    async def select(
        self,
        table: str,
        *,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int | None = None,
        count: bool = False,
        access_token: str | None = None,
    ) -> SelectResult:
        """Read rows matching equality filters."""
        raise NotImplementedError

    @abstractmethod
    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        filters: dict[str, Any],
        access_token: str | None = None,
    ) -> list[dict[str, Any]]:
        """Update rows matching equality filters and return them."""
        raise NotImplementedError

    @abstractmethod
    async def delete(
        self,
        table: str,
        *,
        filters: dict[str, Any],
        access_token: str | None = None,
    ) -> list[dict[str, Any]]:
        """Delete rows matching equality filters and return them."""
        raise NotImplementedError

    @abstractmethod
    async def admin_update_user(self, auth_user_id: str, attributes: dict[str, Any]) -> dict[str, Any]:
        """Update an auth user (e.g., password) with admin privileges."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources (no-op by default)."""
