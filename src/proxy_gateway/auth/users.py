"""
User Store

Credential verification behind a small interface so a persistent store can
replace the built-in fixed user list.
"""

from __future__ import annotations

import hmac
from typing import Any, Protocol

from proxy_gateway.auth.models import Identity, UserRole

# Fixed user list for development (replace with a real user service in production)
DEMO_USERS: dict[str, dict[str, Any]] = {
    "admin": {
        "id": "1",
        "username": "admin",
        "password": "admin123",  # In production, use proper password hashing
        "role": UserRole.ADMIN.value,
        "permissions": ["read", "write", "delete"],
    },
    "user": {
        "id": "2",
        "username": "user",
        "password": "user123",
        "role": UserRole.USER.value,
        "permissions": ["read"],
    },
}


class UserStore(Protocol):
    """Capability the auth layer needs from an identity store."""

    async def authenticate(self, username: str, password: str) -> Identity | None:
        """Verify credentials and return the matching identity."""

    async def get_user(self, user_id: str) -> Identity | None:
        """Look up an identity by id."""


class InMemoryUserStore:
    """User store backed by a fixed in-memory user list."""

    def __init__(self, users: dict[str, dict[str, Any]] | None = None) -> None:
        self._users = users if users is not None else DEMO_USERS
        self._by_id = {data["id"]: data for data in self._users.values()}

    @staticmethod
    def _to_identity(data: dict[str, Any]) -> Identity:
        return Identity(
            id=data["id"],
            username=data["username"],
            role=data["role"],
            permissions=list(data["permissions"]),
        )

    async def authenticate(self, username: str, password: str) -> Identity | None:
        """
        Authenticate user credentials.

        Args:
            username: Username
            password: Password

        Returns:
            Identity if authenticated, None otherwise
        """
        data = self._users.get(username)
        if not data:
            return None

        if not hmac.compare_digest(data["password"].encode(), password.encode()):
            return None

        return self._to_identity(data)

    async def get_user(self, user_id: str) -> Identity | None:
        data = self._by_id.get(user_id)
        return self._to_identity(data) if data else None
