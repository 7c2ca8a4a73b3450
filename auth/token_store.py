from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from auth.canva_oauth import TokenResponse
from auth.models import Credential
from canvagen.constants import DEFAULT_CREDENTIAL_KEY, LOGGER, TOKEN_REFRESH_MARGIN_SECONDS
from canvagen.errors import AuthenticationRequired, RefreshError, Unauthenticated

RefreshFn = Callable[[str], Awaitable[TokenResponse]]


class TokenStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Credential | None:
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, data: Credential) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryTokenStore(TokenStore):
    def __init__(self) -> None:
        self._tokens: dict[str, Credential] = {}

    async def get(self, key: str) -> Credential | None:
        return self._tokens.get(key)

    async def set(self, key: str, data: Credential) -> None:
        self._tokens[key] = data

    async def delete(self, key: str) -> None:
        self._tokens.pop(key, None)


class TokenManager:
    """Owns the single live Canva credential.

    Refreshes lazily when the access token is within ``refresh_margin_seconds``
    of expiry. Concurrent callers await one shared refresh task, so a refresh
    token is spent at most once and a failure reaches every waiter.
    """

    def __init__(
        self,
        store: TokenStore,
        refresh_fn: RefreshFn,
        *,
        key: str = DEFAULT_CREDENTIAL_KEY,
        refresh_margin_seconds: float = TOKEN_REFRESH_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.key = key
        self.refresh_margin_seconds = refresh_margin_seconds
        self._refresh_fn = refresh_fn
        self._clock = clock
        self._refresh_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task[Credential] | None = None

    async def save(
        self,
        token: TokenResponse,
        *,
        previous: Credential | None = None,
    ) -> Credential:
        refresh_token = token.refresh_token
        if not refresh_token and previous is not None:
            refresh_token = previous.refresh_token
        if not refresh_token:
            raise Unauthenticated("Token response did not include a refresh token.")

        credential = Credential(
            access_token=token.access_token,
            refresh_token=refresh_token,
            token_type=token.token_type,
            expires_at=self._clock() + token.expires_in,
        )
        await self.store.set(self.key, credential)
        LOGGER.info("Tokens stored, expires in %ss", token.expires_in)
        return credential

    def _usable(self, credential: Credential) -> bool:
        return credential.is_usable(self._clock(), self.refresh_margin_seconds)

    async def get_valid_token(self) -> str:
        credential = await self.store.get(self.key)
        if credential is None:
            raise Unauthenticated()
        if self._usable(credential):
            return credential.access_token

        async with self._refresh_lock:
            task = self._refresh_task
            if task is None or task.done():
                # Another caller may have refreshed while we waited.
                credential = await self.store.get(self.key)
                if credential is None:
                    raise Unauthenticated()
                if self._usable(credential):
                    return credential.access_token
                task = asyncio.create_task(self._refresh(credential))
                self._refresh_task = task

        try:
            credential = await asyncio.shield(task)
        finally:
            if self._refresh_task is task and task.done():
                self._refresh_task = None
        return credential.access_token

    async def _refresh(self, credential: Credential) -> Credential:
        LOGGER.info("Access token expired or expiring soon, refreshing")
        try:
            refreshed = await self._refresh_fn(credential.refresh_token)
        except RefreshError as error:
            raise AuthenticationRequired(
                f"Failed to refresh token: {error.message}",
                details=error.details,
            ) from error
        return await self.save(refreshed, previous=credential)

    async def status(self) -> dict:
        credential = await self.store.get(self.key)
        if credential is None:
            return {"authenticated": False, "expires_at": None, "needs_refresh": None}
        return {
            "authenticated": True,
            "expires_at": credential.expires_at,
            "needs_refresh": not self._usable(credential),
        }
