"""
Gateway Authentication Module

Dual session/token authentication: server-side sessions keyed by a cookie
and stateless JWT bearer tokens, both resolving to one Identity shape.
"""

from proxy_gateway.auth.dependencies import (
    optional_auth,
    require_admin,
    require_auth,
    require_permission,
    require_role,
)
from proxy_gateway.auth.jwt import TokenManager
from proxy_gateway.auth.models import Identity, Session, SessionState, UserRole
from proxy_gateway.auth.resolver import IdentityResolver
from proxy_gateway.auth.session import SessionStore
from proxy_gateway.auth.users import InMemoryUserStore, UserStore

__all__ = [
    "Identity",
    "IdentityResolver",
    "InMemoryUserStore",
    "Session",
    "SessionState",
    "SessionStore",
    "TokenManager",
    "UserRole",
    "UserStore",
    "optional_auth",
    "require_admin",
    "require_auth",
    "require_permission",
    "require_role",
]
