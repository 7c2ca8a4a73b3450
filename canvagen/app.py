from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from .constants import APP_VERSION, SERVICE_NAME
from .generate import utc_timestamp


async def health_route(request: Request) -> Response:
    del request
    return JSONResponse(
        {
            "status": "OK",
            "message": f"{SERVICE_NAME} is running",
            "version": APP_VERSION,
            "timestamp": utc_timestamp(),
        }
    )


async def echo_route(request: Request) -> Response:
    try:
        received = await request.json()
    except ValueError:
        received = None
    return JSONResponse(
        {
            "success": True,
            "message": "API is working correctly",
            "receivedData": received,
            "timestamp": utc_timestamp(),
        }
    )


def service_routes() -> list[Route]:
    return [
        Route("/health", health_route, methods=["GET"]),
        Route("/api/test", echo_route, methods=["POST"]),
    ]
