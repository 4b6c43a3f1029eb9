"""
FastAPI Authentication Dependencies

Dependency functions for protecting routes with session or token auth.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated

import structlog
from fastapi import Depends, Request

from proxy_gateway.auth.models import Identity, UserRole
from proxy_gateway.auth.resolver import IdentityResolver, Resolution
from proxy_gateway.errors import Forbidden, SessionExpired, Unauthorized

logger = structlog.get_logger()


def get_identity_resolver(request: Request) -> IdentityResolver:
    return request.app.state.identity_resolver


async def get_resolution(
    request: Request,
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)],
) -> Resolution:
    """
    Resolve the request's credentials once per request.

    FastAPI caches dependency results per request, so composed guards share
    a single resolution and refresh the session only once.
    """
    return await resolver.resolve(request)


async def optional_auth(
    resolution: Annotated[Resolution, Depends(get_resolution)],
) -> Identity | None:
    """Get the current identity if any credential is valid. Never fails."""
    return resolution.identity


async def require_auth(
    resolution: Annotated[Resolution, Depends(get_resolution)],
) -> Identity:
    """
    Require an authenticated identity.

    Raises:
        SessionExpired: If the request carries a stale session (already destroyed)
        Unauthorized: If no credential resolves to an identity
    """
    if resolution.session_expired:
        raise SessionExpired()

    if resolution.identity is None:
        raise Unauthorized()

    return resolution.identity


def require_role(role: str) -> Callable[..., Awaitable[Identity]]:
    """
    Build a dependency requiring an exact role.

    Args:
        role: Required role name
    """

    async def dependency(
        identity: Annotated[Identity, Depends(require_auth)],
    ) -> Identity:
        if identity.role != role:
            logger.warning(
                "Insufficient role",
                user_id=identity.id,
                username=identity.username,
                required_role=role,
                user_role=identity.role,
            )
            raise Forbidden(f"Role '{role}' required")
        return identity

    return dependency


def require_permission(permission: str) -> Callable[..., Awaitable[Identity]]:
    """
    Build a dependency requiring a permission.

    Args:
        permission: Required permission name
    """

    async def dependency(
        identity: Annotated[Identity, Depends(require_auth)],
    ) -> Identity:
        if not identity.has_permission(permission):
            logger.warning(
                "Missing permission",
                user_id=identity.id,
                username=identity.username,
                required_permission=permission,
            )
            raise Forbidden(f"Permission '{permission}' required")
        return identity

    return dependency


require_admin = require_role(UserRole.ADMIN.value)
