from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable

from auth.models import AuthorizationRequest, PendingAuth
from auth.pkce import generate_code_challenge, generate_code_verifier, generate_state
from canvagen.constants import DEFAULT_PENDING_AUTH_TTL_SECONDS, LOGGER
from canvagen.errors import InvalidOrExpiredState


class SessionStore(ABC):
    """Pending authorizations keyed by state.

    ``pop`` must read and delete in one step: a state handed out once can never
    be handed out again, whatever the backend.
    """

    @abstractmethod
    async def set(self, state: str, pending: PendingAuth) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get(self, state: str) -> PendingAuth | None:
        raise NotImplementedError

    @abstractmethod
    async def pop(self, state: str) -> PendingAuth | None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, state: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def purge_older_than(self, cutoff: float) -> int:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._pending: dict[str, PendingAuth] = {}

    def __len__(self) -> int:
        return len(self._pending)

    async def set(self, state: str, pending: PendingAuth) -> None:
        self._pending[state] = pending

    async def get(self, state: str) -> PendingAuth | None:
        return self._pending.get(state)

    async def pop(self, state: str) -> PendingAuth | None:
        return self._pending.pop(state, None)

    async def delete(self, state: str) -> None:
        self._pending.pop(state, None)

    async def purge_older_than(self, cutoff: float) -> int:
        expired_states = [
            state for state, pending in self._pending.items() if pending.created_at < cutoff
        ]
        for state in expired_states:
            del self._pending[state]
        return len(expired_states)


class AuthorizationSessions:
    def __init__(
        self,
        store: SessionStore,
        *,
        ttl_seconds: int = DEFAULT_PENDING_AUTH_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    async def begin(self) -> AuthorizationRequest:
        await self._cleanup()

        state = generate_state()
        code_verifier = generate_code_verifier()
        code_challenge = generate_code_challenge(code_verifier)

        await self.store.set(
            state,
            PendingAuth(state=state, code_verifier=code_verifier, created_at=self._clock()),
        )
        return AuthorizationRequest(
            state=state,
            code_verifier=code_verifier,
            code_challenge=code_challenge,
        )

    async def resolve(self, state: str | None) -> str:
        if not state:
            raise InvalidOrExpiredState()

        pending = await self.store.pop(state)
        if pending is None:
            raise InvalidOrExpiredState()
        if self._expired(pending):
            LOGGER.info("Rejected expired authorization state")
            raise InvalidOrExpiredState()
        return pending.code_verifier

    async def exists(self, state: str | None) -> bool:
        if not state:
            return False
        pending = await self.store.get(state)
        return pending is not None and not self._expired(pending)

    async def discard(self, state: str | None) -> None:
        if state:
            await self.store.delete(state)

    def _expired(self, pending: PendingAuth) -> bool:
        return self._clock() - pending.created_at > self.ttl_seconds

    async def _cleanup(self) -> None:
        purged = await self.store.purge_older_than(self._clock() - self.ttl_seconds)
        if purged:
            LOGGER.info("Purged %s expired authorization state(s)", purged)
