from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from auth.cors import DEFAULT_CORS_ORIGINS, cors_json_response, preflight_route
from auth.token_store import TokenManager

from .autofill import AutofillPoller, JobResult, JobStatus
from .constants import LOGGER
from .errors import SubmissionError, Unauthenticated, UploadError
from .upload import Uploader

AUTH_START_PATH = "/api/auth/start"
GENERATE_PATHS = ("/api/generate", "/api/generate-instagram-post")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_generate_body(payload: Any) -> tuple[str | None, dict | None, str | None]:
    """Pull ``templateId``, ``fieldData`` and ``title`` out of a generate request.

    Absent fields come back as ``None``. A field present with the wrong type
    raises ``ValueError`` naming it.
    """
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object.")

    template_key = "templateId" if payload.get("templateId") is not None else "brandTemplateId"
    template_id = payload.get(template_key)
    field_key = "fieldData" if payload.get("fieldData") is not None else "data"
    field_data = payload.get(field_key)
    title = payload.get("title")

    if template_id is not None and not isinstance(template_id, str):
        raise ValueError(f"{template_key} must be a string.")
    if field_data is not None and not isinstance(field_data, dict):
        raise ValueError(f"{field_key} must be an object.")
    if title is not None and not isinstance(title, str):
        raise ValueError("title must be a string.")
    return template_id, field_data, title


class GenerateRoutes:
    def __init__(
        self,
        *,
        token_manager: TokenManager,
        poller: AutofillPoller,
        uploader: Uploader | None = None,
        cors_origins: set[str] | None = None,
    ) -> None:
        self.token_manager = token_manager
        self.poller = poller
        self.uploader = uploader
        self.cors_origins = set(cors_origins) if cors_origins else set(DEFAULT_CORS_ORIGINS)

    def routes(self) -> list[Route]:
        routes = [Route(path, self._handle_generate, methods=["POST"]) for path in GENERATE_PATHS]
        routes.extend(preflight_route(path, self.cors_origins) for path in GENERATE_PATHS)
        return routes

    async def _handle_generate(self, request: Request) -> Response:
        try:
            payload = await request.json()
        except ValueError:
            return self._json(request, {"success": False, "error": "Invalid JSON body."}, 400)

        try:
            template_id, field_data, title = parse_generate_body(payload)
        except ValueError as error:
            return self._json(request, {"success": False, "error": str(error)}, 400)

        missing = []
        if not template_id:
            missing.append("templateId")
        if not field_data:
            missing.append("fieldData")
        if missing:
            return self._json(
                request,
                {"success": False, "error": f"Missing required fields: {', '.join(missing)}"},
                400,
            )

        try:
            access_token = await self.token_manager.get_valid_token()
        except Unauthenticated as error:
            body = error.to_payload()
            body["auth_url"] = str(request.base_url).rstrip("/") + AUTH_START_PATH
            return self._json(request, body, error.status_code)

        try:
            job_id = await self.poller.submit(template_id, field_data, access_token, title=title)
        except SubmissionError as error:
            body = error.to_payload()
            body.update({"templateId": template_id, "timestamp": utc_timestamp()})
            return self._json(request, body, error.status_code)

        result = await self.poller.await_completion(job_id, access_token)
        if not result.succeeded:
            return self._json(
                request,
                self._failure_body(result, template_id),
                504 if result.status is JobStatus.TIMEOUT else 502,
            )

        return self._json(request, await self._success_body(result, template_id))

    async def _success_body(self, result: JobResult, template_id: str) -> dict:
        body: dict[str, Any] = {
            "success": True,
            "jobId": result.job_id,
            "status": result.status.value,
            "designUrl": result.design_url,
            "thumbnailUrl": result.thumbnail_url,
            "securizedUrl": None,
            "uploadId": None,
            "templateId": template_id,
            "attempts": result.attempts,
            "timestamp": utc_timestamp(),
        }

        if self.uploader is None:
            body["warning"] = "Thumbnail upload is not configured."
        elif not result.thumbnail_url:
            body["warning"] = "Canva did not return a thumbnail to upload."
        else:
            try:
                uploaded = await self.uploader.upload(
                    result.thumbnail_url,
                    {"job_id": result.job_id, "template_id": template_id},
                )
            except UploadError as error:
                LOGGER.warning("Thumbnail upload failed job_id=%s: %s", result.job_id, error.message)
                body["warning"] = f"Thumbnail upload failed: {error.message}"
            except Exception as error:
                LOGGER.exception("Unexpected thumbnail upload error job_id=%s", result.job_id)
                body["warning"] = f"Thumbnail upload failed: {error}"
            else:
                body["securizedUrl"] = uploaded.secure_url
                body["uploadId"] = uploaded.public_id
        return body

    def _failure_body(self, result: JobResult, template_id: str) -> dict:
        return {
            "success": False,
            "jobId": result.job_id,
            "status": result.status.value,
            "error": result.error,
            "attempts": result.attempts,
            "templateId": template_id,
            "timestamp": utc_timestamp(),
        }

    def _json(self, request: Request, payload: dict, status_code: int = 200) -> Response:
        return cors_json_response(request, self.cors_origins, payload, status_code)
