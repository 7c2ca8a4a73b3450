from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger("canvagen")
APP_VERSION = "0.1.0"
SERVICE_NAME = "Canva Template API"

CANVA_AUTHORIZE_URL = "https://www.canva.com/api/oauth/authorize"
CANVA_TOKEN_URL = "https://api.canva.com/rest/v1/oauth/token"
CANVA_API_BASE_URL = "https://api.canva.com/rest"

DEFAULT_SCOPES = [
    "folder:permission:read",
    "design:content:read",
    "app:write",
    "design:content:write",
    "folder:read",
    "folder:write",
    "folder:permission:write",
    "asset:read",
    "design:permission:read",
    "design:permission:write",
    "brandtemplate:content:read",
    "comment:read",
    "profile:read",
    "brandtemplate:meta:read",
    "comment:write",
    "design:meta:read",
    "app:read",
    "asset:write",
]

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_POLL_MAX_ATTEMPTS = 30
DEFAULT_PENDING_AUTH_TTL_SECONDS = 600
# Refresh when the access token has less than this left.
TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60
DEFAULT_CREDENTIAL_KEY = "default"

ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
