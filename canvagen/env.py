from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, ValidationError

from .constants import (
    CANVA_API_BASE_URL,
    DEFAULT_PENDING_AUTH_TTL_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_POLL_MAX_ATTEMPTS,
    DEFAULT_SCOPES,
    DEFAULT_TIMEOUT_SECONDS,
    ENV_FILE,
    LOGGER,
)
from .errors import ConfigurationError

REQUIRED_ENV = (
    "CANVA_CLIENT_ID",
    "CANVA_CLIENT_SECRET",
    "CANVA_REDIRECT_URI",
)


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv_env(key: str, default: str = "") -> set[str]:
    raw = os.getenv(key, default)
    if not raw.strip():
        return set()
    return {item.strip() for item in raw.split(",") if item.strip()}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number.")


def load_env() -> None:
    if not ENV_FILE.exists():
        return
    load_dotenv(ENV_FILE, override=False)


def validate_env() -> None:
    missing = [key for key in REQUIRED_ENV if not os.getenv(key, "").strip()]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    redirect_uri = os.getenv("CANVA_REDIRECT_URI", "").strip()
    try:
        AnyHttpUrl(redirect_uri)
    except ValidationError as error:
        raise ConfigurationError(
            "CANVA_REDIRECT_URI must be a valid http(s) URL (for example: "
            "http://127.0.0.1:3000/callback)."
        ) from error


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("APP_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled


@dataclass
class CloudinarySettings:
    cloud_name: str
    api_key: str
    api_secret: str
    folder: str | None = None


@dataclass
class Settings:
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: list[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    api_base_url: str = CANVA_API_BASE_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    poll_max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS
    pending_auth_ttl_seconds: int = DEFAULT_PENDING_AUTH_TTL_SECONDS
    cors_origins: set[str] = field(default_factory=lambda: {"*"})
    cloudinary: CloudinarySettings | None = None
    host: str = "127.0.0.1"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        validate_env()

        scopes = os.getenv("CANVA_SCOPES", "").split() or list(DEFAULT_SCOPES)
        poll_max_attempts = _get_env_int("AUTOFILL_MAX_ATTEMPTS", DEFAULT_POLL_MAX_ATTEMPTS)
        if poll_max_attempts < 1:
            raise ConfigurationError("AUTOFILL_MAX_ATTEMPTS must be at least 1.")

        return cls(
            client_id=os.getenv("CANVA_CLIENT_ID", "").strip(),
            client_secret=os.getenv("CANVA_CLIENT_SECRET", "").strip(),
            redirect_uri=os.getenv("CANVA_REDIRECT_URI", "").strip(),
            scopes=scopes,
            api_base_url=os.getenv("CANVA_API_BASE_URL", CANVA_API_BASE_URL).rstrip("/"),
            timeout=_get_env_float("CANVA_API_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
            poll_interval=_get_env_float("AUTOFILL_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS),
            poll_max_attempts=poll_max_attempts,
            pending_auth_ttl_seconds=_get_env_int(
                "PENDING_AUTH_TTL_SECONDS", DEFAULT_PENDING_AUTH_TTL_SECONDS
            ),
            cors_origins=parse_csv_env("CORS_ORIGINS", "*"),
            cloudinary=_cloudinary_from_env(),
            host=os.getenv("HOST", "127.0.0.1"),
            port=_get_env_int("PORT", 3000),
        )


def _cloudinary_from_env() -> CloudinarySettings | None:
    cloud_name = os.getenv("CLOUDINARY_CLOUD_NAME", "").strip()
    api_key = os.getenv("CLOUDINARY_API_KEY", "").strip()
    api_secret = os.getenv("CLOUDINARY_API_SECRET", "").strip()
    if not (cloud_name and api_key and api_secret):
        LOGGER.warning("Cloudinary credentials not configured; thumbnail upload disabled.")
        return None
    return CloudinarySettings(
        cloud_name=cloud_name,
        api_key=api_key,
        api_secret=api_secret,
        folder=os.getenv("CLOUDINARY_FOLDER", "").strip() or None,
    )
