from __future__ import annotations

import base64
import hashlib
import secrets
import urllib.parse

from canvagen.constants import CANVA_AUTHORIZE_URL

VERIFIER_BYTES = 32
STATE_BYTES = 32


def _base64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def generate_code_verifier() -> str:
    return _base64url(secrets.token_bytes(VERIFIER_BYTES))


def generate_code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return _base64url(digest)


def generate_state() -> str:
    """CSRF correlation handle, unrelated to the PKCE pair."""
    return secrets.token_hex(STATE_BYTES)


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: list[str],
    state: str,
    code_challenge: str,
    *,
    authorize_url: str = CANVA_AUTHORIZE_URL,
) -> str:
    query = {
        "code_challenge_method": "s256",
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": " ".join(scopes),
        "code_challenge": code_challenge,
        "state": state,
    }
    return f"{authorize_url}?{urllib.parse.urlencode(query, quote_via=urllib.parse.quote)}"
