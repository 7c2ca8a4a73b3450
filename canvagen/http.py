from __future__ import annotations

import httpx

from .constants import LOGGER

MAX_LOGGED_BODY = 1000


def friendly_error_message(status_code: int) -> str:
    if status_code == 400:
        return "Canva rejected the request as invalid."
    if status_code == 401:
        return "Authentication failed. Your Canva token may have expired."
    if status_code == 403:
        return "You don't have permission to perform this action on Canva."
    if status_code == 404:
        return "The requested resource was not found on Canva."
    if status_code == 429:
        return "Rate limit exceeded. Please wait before retrying."
    if status_code >= 500:
        return "Canva API is experiencing issues. Please try again later."
    return f"Canva API request failed with status {status_code}."


def upstream_error_payload(response: httpx.Response) -> dict:
    try:
        raw_error = response.json()
    except ValueError:
        raw_error = {"raw": response.text}
    return {
        "message": friendly_error_message(response.status_code),
        "status": response.status_code,
        "upstream": raw_error,
    }


def transport_error_payload(error: httpx.HTTPError) -> dict:
    return {
        "message": f"Request to upstream failed: {error.__class__.__name__}",
        "upstream": str(error) or repr(error),
    }


async def log_request(request: httpx.Request) -> None:
    LOGGER.info("Canva API request %s %s", request.method, request.url)


async def log_response(response: httpx.Response) -> None:
    LOGGER.info(
        "Canva API response %s %s -> %s",
        response.request.method,
        response.request.url,
        response.status_code,
    )
    if response.status_code >= 400:
        body = await response.aread()
        text = body.decode("utf-8", errors="replace")
        if len(text) > MAX_LOGGED_BODY:
            text = text[:MAX_LOGGED_BODY] + "...<truncated>"
        LOGGER.warning("Canva API error body: %s", text)


def build_api_client(
    base_url: str,
    *,
    timeout: float,
    debug_enabled: bool = True,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    event_hooks: dict[str, list] = {"request": [], "response": []}
    if debug_enabled:
        event_hooks["request"].append(log_request)
        event_hooks["response"].append(log_response)

    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        transport=transport,
        event_hooks=event_hooks,
    )
