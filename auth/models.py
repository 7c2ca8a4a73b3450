from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PendingAuth:
    state: str
    code_verifier: str
    created_at: float


@dataclass
class AuthorizationRequest:
    state: str
    code_verifier: str
    code_challenge: str


@dataclass
class Credential:
    access_token: str
    refresh_token: str
    token_type: str
    expires_at: float

    def is_usable(self, now: float, margin_seconds: float) -> bool:
        return now + margin_seconds < self.expires_at
