from __future__ import annotations

import contextlib
import functools

import uvicorn
from starlette.applications import Starlette

from auth import canva_oauth
from auth.routes import AuthRoutes
from auth.session_store import AuthorizationSessions, MemorySessionStore
from auth.token_store import MemoryTokenStore, TokenManager
from canvagen.app import service_routes
from canvagen.autofill import AutofillPoller
from canvagen.constants import APP_VERSION, LOGGER, SERVICE_NAME
from canvagen.env import Settings, load_env, setup_logging, validate_env
from canvagen.errors import ConfigurationError
from canvagen.generate import GenerateRoutes
from canvagen.http import build_api_client
from canvagen.upload import CloudinaryUploader


def create_app() -> Starlette:
    load_env()
    debug_enabled = setup_logging()
    settings = Settings.from_env()

    http_client = build_api_client(
        settings.api_base_url,
        timeout=settings.timeout,
        debug_enabled=debug_enabled,
    )

    async def refresh_credential(refresh_token: str) -> canva_oauth.TokenResponse:
        return await canva_oauth.refresh_token(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            refresh_token=refresh_token,
            client=http_client,
        )

    sessions = AuthorizationSessions(
        MemorySessionStore(),
        ttl_seconds=settings.pending_auth_ttl_seconds,
    )
    token_manager = TokenManager(MemoryTokenStore(), refresh_credential)
    poller = AutofillPoller(
        http_client,
        interval_seconds=settings.poll_interval,
        max_attempts=settings.poll_max_attempts,
    )
    uploader = None
    if settings.cloudinary is not None:
        uploader = CloudinaryUploader(settings.cloudinary, timeout=settings.timeout)

    auth_routes = AuthRoutes(
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        redirect_uri=settings.redirect_uri,
        sessions=sessions,
        token_manager=token_manager,
        scopes=settings.scopes,
        cors_origins=settings.cors_origins,
        exchange_code_fn=functools.partial(canva_oauth.exchange_code, client=http_client),
    )
    generate_routes = GenerateRoutes(
        token_manager=token_manager,
        poller=poller,
        uploader=uploader,
        cors_origins=settings.cors_origins,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        LOGGER.info("%s %s starting", SERVICE_NAME, APP_VERSION)
        try:
            yield
        finally:
            await http_client.aclose()

    app = Starlette(
        routes=[*service_routes(), *auth_routes.routes(), *generate_routes.routes()],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.token_manager = token_manager
    app.state.sessions = sessions
    app.state.http_client = http_client
    return app


def main() -> None:
    try:
        app = create_app()
    except ConfigurationError as error:
        LOGGER.error("Configuration error: %s", error)
        raise SystemExit(1) from error

    settings: Settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)


__all__ = [
    "create_app",
    "main",
    "load_env",
    "setup_logging",
    "validate_env",
]


if __name__ == "__main__":
    main()
