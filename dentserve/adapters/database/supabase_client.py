"""Supabase adapter speaking PostgREST and GoTrue over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from dentserve.adapters.database.base import AbstractDatabaseClient, SelectResult
from dentserve.core.errors import UpstreamAppError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

_PROFILE_COLUMNS = (
    "id,auth_user_id,email,"
    "user_profiles!inner(id,user_type,first_name,last_name)"
)


def _eq_filters(filters: dict[str, Any] | None) -> dict[str, str]:
    """Encode equality filters the way PostgREST expects (``col=eq.value``)."""
    encoded: dict[str, str] = {}
    for column, value in (filters or {}).items():
        if value is None:
            encoded[column] = "is.null"
        elif isinstance(value, bool):
            encoded[column] = f"eq.{str(value).lower()}"
        else:
            encoded[column] = f"eq.{value}"
    return encoded


def _parse_content_range(header: str | None) -> int | None:
    """Extract the total from a ``Content-Range: 0-9/42`` header."""
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


class SupabaseClient(AbstractDatabaseClient):
    """Async Supabase client built on a shared ``httpx.AsyncClient``.

    Requests made on behalf of a user send that user's access token so
    row-level security applies; everything else uses the service-role key.
    """

    def __init__(
        self,
        url: str,
        anon_key: str | None,
        service_role_key: str | None,
        *,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._anon_key = anon_key or service_role_key or ""
        self._service_role_key = service_role_key or ""
        self._client = httpx.AsyncClient(
            base_url=url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    def _headers(self, access_token: str | None, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {access_token or self._service_role_key}",
        }
        headers.update(extra)
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("database.timeout", extra={"path": path, "method": method})
            raise UpstreamUnavailableError(
                code="upstream_timeout",
                message="Database request timed out",
            ) from exc
        except httpx.TransportError as exc:
            logger.error(
                "database.unreachable",
                extra={"path": path, "method": method, "error": str(exc)},
            )
            raise UpstreamUnavailableError(
                code="upstream_unavailable",
                message="Service temporarily unavailable",
            ) from exc

        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "database.error_response",
                extra={"path": path, "method": method, "status": response.status_code, "error": message},
            )
            raise UpstreamAppError(
                code="database_error",
                message=message,
                details={"upstream_status": response.status_code},
            )
        return response

    async def get_auth_user(self, access_token: str) -> dict[str, Any] | None:
        try:
            response = await self._request(
                "GET",
                "/auth/v1/user",
                headers=self._headers(access_token),
            )
        except UpstreamAppError as exc:
            if isinstance(exc, UpstreamUnavailableError):
                raise
            status = (exc.details or {}).get("upstream_status")
            if status in (400, 401, 403, 404):
                logger.info("auth.token_rejected", extra={"upstream_status": status})
                return None
            raise
        user = response.json()
        return user if isinstance(user, dict) and user.get("id") else None

    async def fetch_user_profile(self, auth_user_id: str) -> dict[str, Any] | None:
        result = await self.select(
            "users",
            columns=_PROFILE_COLUMNS,
            filters={"auth_user_id": auth_user_id, "is_active": True},
            limit=1,
        )
        if not result.rows:
            return None
        row = dict(result.rows[0])
        profile = row.get("user_profiles")
        # Embedded one-to-one relations may come back as a single-item list
        if isinstance(profile, list):
            profile = profile[0] if profile else None
        if not profile:
            return None
        row["user_profiles"] = profile
        return row

    async def rpc(
        self,
        name: str,
        params: dict[str, Any] | None = None,
        *,
        access_token: str | None = None,
    ) -> Any:
        logger.debug("database.rpc", extra={"rpc": name})
        response = await self._request(
            "POST",
            f"/rest/v1/rpc/{name}",
            json=params or {},
            headers=self._headers(access_token),
        )
        if not response.content:
            return None
        return response.json()

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
        params: dict[str, Any] = {"select": columns, **_eq_filters(filters)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = limit
        if offset:
            params["offset"] = offset

        extra = {"Prefer": "count=exact"} if count else {}
        response = await self._request(
            "GET",
            f"/rest/v1/{table}",
            params=params,
            headers=self._headers(access_token, **extra),
        )
        rows = response.json() or []
        total = _parse_content_range(response.headers.get("content-range")) if count else None
        return SelectResult(rows=rows, count=total)

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        filters: dict[str, Any],
        access_token: str | None = None,
    ) -> list[dict[str, Any]]:
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=_eq_filters(filters),
            json=values,
            headers=self._headers(access_token, Prefer="return=representation"),
        )
        return response.json() if response.content else []

    async def delete(
        self,
        table: str,
        *,
        filters: dict[str, Any],
        access_token: str | None = None,
    ) -> list[dict[str, Any]]:
        response = await self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=_eq_filters(filters),
            headers=self._headers(access_token, Prefer="return=representation"),
        )
        return response.json() if response.content else []

    async def admin_update_user(self, auth_user_id: str, attributes: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "PUT",
            f"/auth/v1/admin/users/{auth_user_id}",
            json=attributes,
            headers=self._headers(None),
        )
        return response.json() if response.content else {}

    async def aclose(self) -> None:
        await self._client.aclose()
