from __future__ import annotations

import base64
from dataclasses import dataclass

import httpx

from canvagen.constants import CANVA_TOKEN_URL, DEFAULT_TIMEOUT_SECONDS, LOGGER
from canvagen.errors import CanvaGenError, ExchangeError, RefreshError
from canvagen.http import transport_error_payload, upstream_error_payload


@dataclass
class TokenResponse:
    access_token: str
    refresh_token: str | None
    expires_in: int
    token_type: str

    @classmethod
    def from_payload(cls, payload: dict, *, require_refresh_token: bool = True) -> "TokenResponse":
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        expires_in = payload.get("expires_in")
        token_type = payload.get("token_type") or "Bearer"

        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Token response missing access_token.")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise ValueError("Token response refresh_token must be a string.")
        if require_refresh_token and not refresh_token:
            raise ValueError("Token response missing refresh_token.")
        if isinstance(expires_in, bool) or not isinstance(expires_in, int):
            raise ValueError("Token response missing expires_in.")
        if not isinstance(token_type, str):
            raise ValueError("Token response token_type must be a string.")

        return cls(
            access_token=access_token,
            refresh_token=refresh_token or None,
            expires_in=expires_in,
            token_type=token_type,
        )


def basic_auth_header(client_id: str, client_secret: str) -> str:
    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


async def _token_request(
    payload: dict[str, str],
    *,
    client_id: str,
    client_secret: str,
    error_cls: type[CanvaGenError],
    require_refresh_token: bool,
    client: httpx.AsyncClient | None = None,
    token_url: str = CANVA_TOKEN_URL,
) -> TokenResponse:
    own_client = client is None
    http_client = client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)
    grant_type = payload["grant_type"]

    try:
        response = await http_client.post(
            token_url,
            data=payload,
            headers={
                "Authorization": basic_auth_header(client_id, client_secret),
                "Content-Type": "application/x-www-form-urlencoded",
            },
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as error:
        details = upstream_error_payload(error.response)
        LOGGER.warning(
            "Token request failed grant_type=%s status=%s",
            grant_type,
            error.response.status_code,
        )
        raise error_cls(
            f"Token request failed with status {error.response.status_code}",
            details=details,
        ) from error
    except httpx.HTTPError as error:
        LOGGER.warning("Token request failed grant_type=%s error=%r", grant_type, error)
        raise error_cls(
            "Token request failed before a response was received",
            details=transport_error_payload(error),
        ) from error
    finally:
        if own_client:
            await http_client.aclose()

    try:
        return TokenResponse.from_payload(
            response.json(),
            require_refresh_token=require_refresh_token,
        )
    except ValueError as error:
        raise error_cls(str(error), details={"upstream": response.text}) from error


async def exchange_code(
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str,
    code_verifier: str,
    *,
    client: httpx.AsyncClient | None = None,
    token_url: str = CANVA_TOKEN_URL,
) -> TokenResponse:
    return await _token_request(
        {
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": code_verifier,
            "redirect_uri": redirect_uri,
        },
        client_id=client_id,
        client_secret=client_secret,
        error_cls=ExchangeError,
        require_refresh_token=True,
        client=client,
        token_url=token_url,
    )


async def refresh_token(
    client_id: str,
    client_secret: str,
    refresh_token: str,
    *,
    client: httpx.AsyncClient | None = None,
    token_url: str = CANVA_TOKEN_URL,
) -> TokenResponse:
    # Canva may rotate the refresh token; a response without one keeps the old token valid.
    return await _token_request(
        {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        },
        client_id=client_id,
        client_secret=client_secret,
        error_cls=RefreshError,
        require_refresh_token=False,
        client=client,
        token_url=token_url,
    )
