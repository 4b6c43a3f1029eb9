"""
Session Management

In-memory server-side sessions with lazy inactivity expiry. A session is
valid while ``now - last_activity < timeout``; an expired session is
destroyed the next time it is accessed. There is no background sweep.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import structlog

from proxy_gateway.auth.models import Identity, Session, SessionState

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionStore:
    """
    Server-side session store.

    Every read-check-refresh and destroy runs under one lock, so overlapping
    requests carrying the same session id see whole updates only.
    """

    def __init__(
        self,
        timeout: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize session store.

        Args:
            timeout: Inactivity timeout
            clock: Source of the current time
        """
        self.timeout = timeout
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    def _state(self, session: Session, now: datetime) -> SessionState:
        if now - session.last_activity < self.timeout:
            return SessionState.ACTIVE
        return SessionState.EXPIRED

    async def create_session(
        self, identity: Identity, preferences: dict[str, Any] | None = None
    ) -> Session:
        """
        Create a new session with a fresh id.

        Args:
            identity: Authenticated identity
            preferences: Initial client preferences

        Returns:
            Created session
        """
        now = self._clock()
        session = Session(
            session_id=str(uuid4()),
            user_id=identity.id,
            role=identity.role,
            created_at=now,
            last_activity=now,
            preferences=preferences or {},
        )

        async with self._lock:
            self._sessions[session.session_id] = session

        logger.info(
            "Session created",
            session_id=session.session_id,
            user_id=identity.id,
            username=identity.username,
        )
        return session

    async def access(self, session_id: str) -> tuple[Session | None, SessionState]:
        """
        Look up a session and refresh its activity if still valid.

        Expired sessions are destroyed as a side effect.

        Args:
            session_id: Session identifier

        Returns:
            Tuple of (session, state). The session is None unless ACTIVE.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None, SessionState.DESTROYED

            now = self._clock()
            if self._state(session, now) is SessionState.EXPIRED:
                del self._sessions[session_id]
                logger.info(
                    "Session expired",
                    session_id=session_id,
                    user_id=session.user_id,
                    idle_seconds=(now - session.last_activity).total_seconds(),
                )
                return None, SessionState.EXPIRED

            session.last_activity = now
            return session.model_copy(deep=True), SessionState.ACTIVE

    async def delete_session(self, session_id: str) -> bool:
        """
        Destroy a session.

        Args:
            session_id: Session identifier

        Returns:
            True if the session existed
        """
        async with self._lock:
            session = self._sessions.pop(session_id, None)

        if session is None:
            return False

        logger.info("Session deleted", session_id=session_id, user_id=session.user_id)
        return True

    async def get_session_count(self) -> int:
        async with self._lock:
            return len(self._sessions)
