from __future__ import annotations

from typing import Any


class CanvaGenError(RuntimeError):
    status_code = 500
    error_code = "internal_error"

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        payload = {"success": False, "error": self.message, "code": self.error_code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ConfigurationError(CanvaGenError):
    error_code = "configuration_error"


class InvalidOrExpiredState(CanvaGenError):
    status_code = 400
    error_code = "invalid_or_expired_state"

    def __init__(self, message: str = "Invalid or expired state parameter", **kwargs) -> None:
        super().__init__(message, **kwargs)


class ExchangeError(CanvaGenError):
    status_code = 500
    error_code = "token_exchange_failed"


class RefreshError(CanvaGenError):
    status_code = 401
    error_code = "token_refresh_failed"


class Unauthenticated(CanvaGenError):
    status_code = 401
    error_code = "unauthenticated"

    def __init__(self, message: str = "No tokens found. Please authenticate first.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class AuthenticationRequired(Unauthenticated):
    error_code = "authentication_required"


class SubmissionError(CanvaGenError):
    status_code = 502
    error_code = "autofill_submission_failed"


class PollTransportError(CanvaGenError):
    status_code = 502
    error_code = "autofill_poll_failed"


class UploadError(CanvaGenError):
    status_code = 502
    error_code = "upload_failed"
