import asyncio

from auth.pkce import generate_code_challenge
from canvagen.constants import CANVA_AUTHORIZE_URL
from canvagen.errors import ExchangeError
from tests.oauth_helpers import build_auth_app, make_token_response, start_authorization


def test_start_redirects_to_canva() -> None:
    auth_routes, test_client = build_auth_app()

    started = start_authorization(test_client)

    assert started["response"].status_code == 302
    assert started["location"].startswith(CANVA_AUTHORIZE_URL)
    assert len(auth_routes.sessions.store) == 1


def test_start_includes_pkce_and_client_params() -> None:
    _, test_client = build_auth_app()

    query = start_authorization(test_client)["query"]

    assert query["code_challenge_method"] == ["s256"]
    assert query["response_type"] == ["code"]
    assert query["client_id"] == ["canva-client"]
    assert query["redirect_uri"] == ["http://127.0.0.1:3000/callback"]
    assert "brandtemplate:content:read" in query["scope"][0].split()


def test_start_stores_verifier_matching_challenge() -> None:
    auth_routes, test_client = build_auth_app()

    query = start_authorization(test_client)["query"]
    state = query["state"][0]
    pending = asyncio.run(auth_routes.sessions.store.get(state))

    assert generate_code_challenge(pending.code_verifier) == query["code_challenge"][0]


def test_legacy_start_path_redirects() -> None:
    _, test_client = build_auth_app()

    response = test_client.get("/api/auth/canva", follow_redirects=False)

    assert response.status_code == 302


def test_start_failure_returns_json_500() -> None:
    auth_routes, test_client = build_auth_app()

    async def broken_begin():
        raise RuntimeError("entropy unavailable")

    auth_routes.sessions.begin = broken_begin

    response = test_client.get("/api/auth/start", follow_redirects=False)

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Failed to generate auth URL",
        "details": "entropy unavailable",
    }


def test_callback_exchanges_code_with_stored_verifier() -> None:
    seen = {}

    async def exchange_code_fn(**kwargs):
        seen.update(kwargs)
        return make_token_response(access_token="A1", refresh_token="R1", expires_in=3600)

    auth_routes, test_client = build_auth_app(exchange_code_fn=exchange_code_fn)
    state = start_authorization(test_client)["query"]["state"][0]
    verifier = asyncio.run(auth_routes.sessions.store.get(state)).code_verifier

    response = test_client.get("/callback", params={"code": "C1", "state": state})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["access_token"] == "A1"
    assert payload["refresh_token"] == "R1"
    assert payload["expires_in"] == 3600
    assert payload["token_type"] == "Bearer"
    assert seen["code"] == "C1"
    assert seen["code_verifier"] == verifier
    assert seen["redirect_uri"] == "http://127.0.0.1:3000/callback"
    assert asyncio.run(auth_routes.token_manager.get_valid_token()) == "A1"


def test_callback_state_cannot_be_replayed() -> None:
    _, test_client = build_auth_app()
    state = start_authorization(test_client)["query"]["state"][0]

    first = test_client.get("/callback", params={"code": "C1", "state": state})
    second = test_client.get("/callback", params={"code": "C1", "state": state})

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["code"] == "invalid_or_expired_state"


def test_callback_unknown_state() -> None:
    _, test_client = build_auth_app()

    response = test_client.get("/callback", params={"code": "C1", "state": "missing"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or expired state parameter"


def test_callback_missing_code() -> None:
    _, test_client = build_auth_app()
    state = start_authorization(test_client)["query"]["state"][0]

    response = test_client.get("/callback", params={"state": state})

    assert response.status_code == 400
    assert response.json()["error"] == "Missing authorization code"


def test_callback_authorization_error_discards_state() -> None:
    auth_routes, test_client = build_auth_app()
    state = start_authorization(test_client)["query"]["state"][0]

    response = test_client.get("/callback", params={"error": "access_denied", "state": state})

    assert response.status_code == 400
    assert response.json()["details"] == "access_denied"
    assert asyncio.run(auth_routes.sessions.exists(state)) is False


def test_callback_exchange_failure_returns_500_with_details() -> None:
    async def exchange_code_fn(**kwargs):
        del kwargs
        raise ExchangeError(
            "Token request failed with status 400",
            details={"status": 400, "upstream": {"code": "invalid_grant"}},
        )

    auth_routes, test_client = build_auth_app(exchange_code_fn=exchange_code_fn)
    state = start_authorization(test_client)["query"]["state"][0]

    response = test_client.get("/callback", params={"code": "C1", "state": state})

    assert response.status_code == 500
    payload = response.json()
    assert payload["success"] is False
    assert payload["error"] == "Failed to exchange code for tokens"
    assert payload["details"]["upstream"] == {"code": "invalid_grant"}
    assert asyncio.run(auth_routes.token_manager.status())["authenticated"] is False


def test_callback_unexpected_error_returns_500() -> None:
    async def exchange_code_fn(**kwargs):
        del kwargs
        raise RuntimeError("boom")

    _, test_client = build_auth_app(exchange_code_fn=exchange_code_fn)
    state = start_authorization(test_client)["query"]["state"][0]

    response = test_client.get("/callback", params={"code": "C1", "state": state})

    assert response.status_code == 500
    assert response.json()["error"] == "Internal server error"


def test_auth_status_route() -> None:
    _, test_client = build_auth_app()

    before = test_client.get("/api/auth/status").json()
    state = start_authorization(test_client)["query"]["state"][0]
    test_client.get("/callback", params={"code": "C1", "state": state})
    after = test_client.get("/api/auth/status").json()

    assert before["authenticated"] is False
    assert after["authenticated"] is True
    assert after["needs_refresh"] is False
