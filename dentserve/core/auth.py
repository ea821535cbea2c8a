"""Bearer-token authentication and role guards.

The access token issued by the auth service is verified on every request
by asking the auth service who it belongs to; the application user and
profile are then loaded to obtain the role.

Usage:
    @router.get("/admin/thing")
    async def thing(user: CurrentUser = Depends(require_roles("admin"))):
        ...
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.api.deps import get_database_client
from dentserve.core.errors import AuthenticationAppError, AuthorizationAppError
from dentserve.core.logging import set_user_id
from dentserve.schemas.auth import CurrentUser

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False, description="Access token from the auth service")

VALID_ROLES = frozenset({"patient", "staff", "admin"})


def _token_hash(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()[:16]


def build_current_user(auth_user: dict[str, Any], profile: dict[str, Any], access_token: str) -> CurrentUser:
    """Combine the auth record and the ``users`` + ``user_profiles`` row.

    Raises:
        AuthenticationAppError: If the profile carries no known role.
    """
    user_profile = profile.get("user_profiles") or {}
    role = user_profile.get("user_type")
    if role not in VALID_ROLES:
        raise AuthenticationAppError(code="profile_not_found", message="User profile not found")

    return CurrentUser(
        auth_user_id=str(auth_user["id"]),
        user_id=str(profile["id"]),
        user_profile_id=str(user_profile["id"]),
        email=profile.get("email") or auth_user.get("email"),
        role=role,
        first_name=user_profile.get("first_name"),
        last_name=user_profile.get("last_name"),
        email_confirmed=bool(auth_user.get("email_confirmed_at") or auth_user.get("confirmed_at")),
        access_token=access_token,
    )


async def authenticate_token(db: AbstractDatabaseClient, access_token: str) -> CurrentUser:
    """Resolve an access token to the current user.

    Raises:
        AuthenticationAppError: Invalid token or no active profile.
    """
    auth_user = await db.get_auth_user(access_token)
    if not auth_user or not auth_user.get("id"):
        logger.warning("auth.invalid_token", extra={"token_hash": _token_hash(access_token)})
        raise AuthenticationAppError(code="invalid_token", message="Invalid or expired token")

    profile = await db.fetch_user_profile(str(auth_user["id"]))
    if not profile:
        logger.warning("auth.profile_missing", extra={"auth_user_id": auth_user["id"]})
        raise AuthenticationAppError(code="profile_not_found", message="User profile not found")

    return build_current_user(auth_user, profile, access_token)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AbstractDatabaseClient = Depends(get_database_client),
) -> CurrentUser:
    """FastAPI dependency returning the authenticated caller.

    Raises:
        AuthenticationAppError: 401 when the header is missing or malformed,
            the token is rejected, or the profile does not exist.
    """
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationAppError(code="missing_token", message="Authorization token required")

    user = await authenticate_token(db, credentials.credentials)
    set_user_id(user.user_id)
    logger.debug("auth.success", extra={"user_id": user.user_id, "role": user.role})
    return user


def require_roles(*roles: str, require_verified: bool = True) -> Callable[..., Any]:
    """Build a dependency that admits only verified users with one of ``roles``.

    With no roles, any authenticated user passes the role check.
    """
    allowed = frozenset(roles)

    async def _guard(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if require_verified and not user.email_confirmed:
            raise AuthorizationAppError(
                code="email_not_verified",
                message="Email verification required",
            )
        if allowed and user.role not in allowed:
            logger.warning(
                "auth.role_denied",
                extra={"user_id": user.user_id, "role": user.role, "required_roles": sorted(allowed)},
            )
            raise AuthorizationAppError(
                code="insufficient_role",
                message=f"Access denied: {' or '.join(sorted(allowed))} required",
                details={"required_roles": sorted(allowed)},
            )
        return user

    return _guard
