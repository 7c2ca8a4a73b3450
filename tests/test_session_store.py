import pytest

from auth.models import PendingAuth
from auth.pkce import generate_code_challenge
from auth.session_store import AuthorizationSessions, MemorySessionStore
from canvagen.errors import InvalidOrExpiredState


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_memory_store_pop_removes_entry() -> None:
    store = MemorySessionStore()
    pending = PendingAuth("state-1", "verifier-1", 1.0)
    await store.set("state-1", pending)

    assert await store.pop("state-1") == pending
    assert await store.pop("state-1") is None
    assert await store.get("state-1") is None


@pytest.mark.asyncio
async def test_memory_store_purge_older_than() -> None:
    store = MemorySessionStore()
    await store.set("old", PendingAuth("old", "v", 10.0))
    await store.set("new", PendingAuth("new", "v", 100.0))

    assert await store.purge_older_than(50.0) == 1
    assert await store.get("old") is None
    assert await store.get("new") is not None


@pytest.mark.asyncio
async def test_begin_stores_verifier_under_state() -> None:
    sessions = AuthorizationSessions(MemorySessionStore())

    request = await sessions.begin()

    assert len(request.state) == 64
    assert request.code_challenge == generate_code_challenge(request.code_verifier)
    pending = await sessions.store.get(request.state)
    assert pending.code_verifier == request.code_verifier


@pytest.mark.asyncio
async def test_resolve_succeeds_exactly_once() -> None:
    sessions = AuthorizationSessions(MemorySessionStore())
    request = await sessions.begin()

    assert await sessions.resolve(request.state) == request.code_verifier
    with pytest.raises(InvalidOrExpiredState):
        await sessions.resolve(request.state)


@pytest.mark.asyncio
async def test_resolve_unknown_state() -> None:
    sessions = AuthorizationSessions(MemorySessionStore())

    with pytest.raises(InvalidOrExpiredState):
        await sessions.resolve("unknown")


@pytest.mark.asyncio
async def test_resolve_missing_state() -> None:
    sessions = AuthorizationSessions(MemorySessionStore())

    with pytest.raises(InvalidOrExpiredState):
        await sessions.resolve(None)


@pytest.mark.asyncio
async def test_exists_does_not_consume() -> None:
    sessions = AuthorizationSessions(MemorySessionStore())
    request = await sessions.begin()

    assert await sessions.exists(request.state) is True
    assert await sessions.exists(request.state) is True
    assert await sessions.resolve(request.state) == request.code_verifier
    assert await sessions.exists(request.state) is False


@pytest.mark.asyncio
async def test_expired_state_is_rejected() -> None:
    clock = FakeClock()
    sessions = AuthorizationSessions(MemorySessionStore(), ttl_seconds=600, clock=clock)
    request = await sessions.begin()

    clock.now += 601

    assert await sessions.exists(request.state) is False
    with pytest.raises(InvalidOrExpiredState):
        await sessions.resolve(request.state)


@pytest.mark.asyncio
async def test_begin_sweeps_expired_states() -> None:
    clock = FakeClock()
    store = MemorySessionStore()
    sessions = AuthorizationSessions(store, ttl_seconds=600, clock=clock)
    stale = await sessions.begin()

    clock.now += 601
    fresh = await sessions.begin()

    assert await store.get(stale.state) is None
    assert await store.get(fresh.state) is not None
    assert len(store) == 1


@pytest.mark.asyncio
async def test_discard_removes_pending_flow() -> None:
    sessions = AuthorizationSessions(MemorySessionStore())
    request = await sessions.begin()

    await sessions.discard(request.state)

    assert await sessions.exists(request.state) is False
