from __future__ import annotations

from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.routing import Route

from auth import canva_oauth
from auth.cors import DEFAULT_CORS_ORIGINS, apply_cors_response, cors_json_response, preflight_route
from auth.pkce import build_authorization_url
from auth.session_store import AuthorizationSessions
from auth.token_store import TokenManager
from canvagen.constants import CANVA_AUTHORIZE_URL, DEFAULT_SCOPES, LOGGER
from canvagen.errors import ExchangeError, InvalidOrExpiredState


class AuthRoutes:
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        sessions: AuthorizationSessions,
        token_manager: TokenManager,
        scopes: list[str] | None = None,
        cors_origins: set[str] | None = None,
        authorize_url: str = CANVA_AUTHORIZE_URL,
        exchange_code_fn=canva_oauth.exchange_code,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.sessions = sessions
        self.token_manager = token_manager
        self.scopes = scopes or list(DEFAULT_SCOPES)
        self.cors_origins = set(cors_origins) if cors_origins else set(DEFAULT_CORS_ORIGINS)
        self.authorize_url = authorize_url
        self._exchange_code_fn = exchange_code_fn

    def routes(self) -> list[Route]:
        routes = [
            Route("/api/auth/start", self._handle_start, methods=["GET"]),
            Route("/api/auth/canva", self._handle_start, methods=["GET"]),
            Route("/callback", self._handle_callback, methods=["GET"]),
            Route("/api/auth/status", self._handle_status, methods=["GET"]),
        ]
        paths = ("/api/auth/start", "/api/auth/canva", "/callback", "/api/auth/status")
        routes.extend(preflight_route(path, self.cors_origins) for path in paths)
        return routes

    # -- handlers --------------------------------------------------------------

    async def _handle_start(self, request: Request) -> Response:
        try:
            pending = await self.sessions.begin()
            url = build_authorization_url(
                client_id=self.client_id,
                redirect_uri=self.redirect_uri,
                scopes=self.scopes,
                state=pending.state,
                code_challenge=pending.code_challenge,
                authorize_url=self.authorize_url,
            )
        except Exception as error:
            LOGGER.exception("Auth URL generation failed")
            return self._error(request, "Failed to generate auth URL", 500, details=str(error))

        LOGGER.info("Redirecting to Canva authorization")
        return apply_cors_response(
            request,
            RedirectResponse(url=url, status_code=302),
            self.cors_origins,
        )

    async def _handle_callback(self, request: Request) -> Response:
        code = request.query_params.get("code")
        state = request.query_params.get("state")
        error = request.query_params.get("error")

        if error:
            if await self.sessions.exists(state):
                await self.sessions.discard(state)
            LOGGER.warning("Canva authorization returned error=%s", error)
            return self._error(
                request,
                "OAuth authorization failed",
                400,
                details=request.query_params.get("error_description") or error,
            )

        if not code:
            return self._error(request, "Missing authorization code", 400)

        try:
            code_verifier = await self.sessions.resolve(state)
        except InvalidOrExpiredState as invalid:
            return cors_json_response(
                request, self.cors_origins, invalid.to_payload(), invalid.status_code
            )

        try:
            token = await self._exchange_code_fn(
                client_id=self.client_id,
                client_secret=self.client_secret,
                code=code,
                redirect_uri=self.redirect_uri,
                code_verifier=code_verifier,
            )
            await self.token_manager.save(token)
        except ExchangeError as failure:
            return self._error(
                request,
                "Failed to exchange code for tokens",
                failure.status_code,
                details=failure.details or failure.message,
            )
        except Exception as failure:
            LOGGER.exception("OAuth callback failed")
            return self._error(request, "Internal server error", 500, details=str(failure))

        LOGGER.info("Token exchange successful")
        return cors_json_response(
            request,
            self.cors_origins,
            {
                "success": True,
                "message": "OAuth authentication successful",
                "access_token": token.access_token,
                "refresh_token": token.refresh_token,
                "expires_in": token.expires_in,
                "token_type": token.token_type,
            },
        )

    async def _handle_status(self, request: Request) -> Response:
        status = await self.token_manager.status()
        return cors_json_response(request, self.cors_origins, {"success": True, **status})

    # -- helpers ---------------------------------------------------------------

    def _error(
        self,
        request: Request,
        message: str,
        status_code: int,
        *,
        details=None,
    ) -> Response:
        payload = {"success": False, "error": message}
        if details is not None:
            payload["details"] = details
        return cors_json_response(request, self.cors_origins, payload, status_code)
