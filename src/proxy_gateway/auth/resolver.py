"""
Identity Resolution

Maps the credentials carried by a request (session cookie, bearer token) to
one canonical :class:`Identity`. Sessions take precedence over tokens.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from fastapi import Request

from proxy_gateway.auth.jwt import TokenManager
from proxy_gateway.auth.models import Identity, Session, SessionState
from proxy_gateway.auth.session import SessionStore
from proxy_gateway.auth.users import UserStore
from proxy_gateway.monitoring.metrics import AUTH_FAILURES, AUTH_SUCCESS

logger = structlog.get_logger()


@dataclass(frozen=True)
class SessionCredential:
    """Session id delivered through the session cookie."""

    session_id: str


@dataclass(frozen=True)
class TokenCredential:
    """Signed token delivered through the Authorization header."""

    token: str


Credential = SessionCredential | TokenCredential


@dataclass
class Resolution:
    """Result of resolving a request's credentials."""

    identity: Identity | None = None
    credential: Credential | None = None
    session: Session | None = None
    session_expired: bool = False

    @property
    def authenticated(self) -> bool:
        return self.identity is not None


def bearer_token(request: Request) -> str | None:
    """Extract a bearer token from the Authorization header."""
    header = request.headers.get("authorization")
    if not header:
        return None

    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class IdentityResolver:
    """Resolve request credentials into an identity without ever blocking."""

    def __init__(
        self,
        sessions: SessionStore,
        tokens: TokenManager,
        users: UserStore,
        cookie_name: str = "proxy_session",
    ) -> None:
        self.sessions = sessions
        self.tokens = tokens
        self.users = users
        self.cookie_name = cookie_name

    def credentials(self, request: Request) -> list[Credential]:
        """Get the credentials carried by a request, in resolution order."""
        found: list[Credential] = []

        session_id = request.cookies.get(self.cookie_name)
        if session_id:
            found.append(SessionCredential(session_id))

        token = bearer_token(request)
        if token:
            found.append(TokenCredential(token))

        return found

    async def resolve_credential(
        self, credential: Credential
    ) -> tuple[Identity | None, Session | None, SessionState | None]:
        """
        Resolve one credential.

        Session credentials are refreshed when active and destroyed when
        expired.

        Returns:
            Tuple of (identity, session, session state). Session and state are
            None for token credentials.
        """
        if isinstance(credential, SessionCredential):
            session, state = await self.sessions.access(credential.session_id)
            if session is None:
                return None, None, state

            identity = await self.users.get_user(session.user_id)
            if identity is None:
                logger.warning("Session refers to unknown user", user_id=session.user_id)
            return identity, session, state

        return self.tokens.verify(credential.token), None, None

    async def resolve(self, request: Request) -> Resolution:
        """
        Resolve the request's identity.

        Tries a valid session first, then a bearer token. Never raises for
        missing or invalid credentials.
        """
        resolution = Resolution()

        for credential in self.credentials(request):
            identity, session, state = await self.resolve_credential(credential)
            method = "session" if isinstance(credential, SessionCredential) else "token"

            if state is SessionState.EXPIRED:
                resolution.session_expired = True
                AUTH_FAILURES.labels(auth_method=method, failure_reason="expired").inc()

            if identity is None:
                if state is not SessionState.EXPIRED:
                    AUTH_FAILURES.labels(auth_method=method, failure_reason="invalid").inc()
                continue

            AUTH_SUCCESS.labels(auth_method=method).inc()
            structlog.contextvars.bind_contextvars(
                user=identity.username, role=identity.role, auth_method=method
            )
            resolution.identity = identity
            resolution.credential = credential
            resolution.session = session
            return resolution

        return resolution
