"""Tests for server-side session management."""

from datetime import UTC, datetime, timedelta

import pytest

from proxy_gateway.auth.models import Identity, SessionState
from proxy_gateway.auth.session import SessionStore

TIMEOUT = timedelta(hours=1)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> SessionStore:
    return SessionStore(timeout=TIMEOUT, clock=clock)


@pytest.fixture
def identity() -> Identity:
    return Identity(id="1", username="admin", role="admin", permissions=["read", "write"])


@pytest.mark.asyncio
async def test_create_session(store: SessionStore, identity: Identity, clock: FakeClock) -> None:
    session = await store.create_session(identity, preferences={"theme": "dark"})

    assert session.user_id == "1"
    assert session.role == "admin"
    assert session.created_at == clock.now
    assert session.last_activity == clock.now
    assert session.preferences == {"theme": "dark"}
    assert await store.get_session_count() == 1


@pytest.mark.asyncio
async def test_session_ids_are_unique(store: SessionStore, identity: Identity) -> None:
    ids = {(await store.create_session(identity)).session_id for _ in range(20)}
    assert len(ids) == 20


@pytest.mark.asyncio
async def test_access_just_inside_timeout_refreshes(
    store: SessionStore, identity: Identity, clock: FakeClock
) -> None:
    session = await store.create_session(identity)
    clock.advance(TIMEOUT - timedelta(milliseconds=1))

    refreshed, state = await store.access(session.session_id)

    assert state is SessionState.ACTIVE
    assert refreshed is not None
    assert refreshed.last_activity == clock.now

    # Activity restarted the window
    clock.advance(TIMEOUT - timedelta(milliseconds=1))
    _, state = await store.access(session.session_id)
    assert state is SessionState.ACTIVE


@pytest.mark.asyncio
async def test_access_past_timeout_destroys(
    store: SessionStore, identity: Identity, clock: FakeClock
) -> None:
    session = await store.create_session(identity)
    clock.advance(TIMEOUT + timedelta(milliseconds=1))

    expired, state = await store.access(session.session_id)

    assert expired is None
    assert state is SessionState.EXPIRED
    assert await store.get_session_count() == 0

    # Later lookups find nothing at all
    _, state = await store.access(session.session_id)
    assert state is SessionState.DESTROYED


@pytest.mark.asyncio
async def test_access_unknown_session(store: SessionStore) -> None:
    session, state = await store.access("missing")

    assert session is None
    assert state is SessionState.DESTROYED


@pytest.mark.asyncio
async def test_returned_session_is_a_copy(store: SessionStore, identity: Identity) -> None:
    session = await store.create_session(identity)

    fetched, _ = await store.access(session.session_id)
    fetched.preferences["mutated"] = True

    again, _ = await store.access(session.session_id)
    assert "mutated" not in again.preferences


@pytest.mark.asyncio
async def test_delete_session(store: SessionStore, identity: Identity) -> None:
    session = await store.create_session(identity)

    assert await store.delete_session(session.session_id) is True
    assert await store.delete_session(session.session_id) is False

    _, state = await store.access(session.session_id)
    assert state is SessionState.DESTROYED
