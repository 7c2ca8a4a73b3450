from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from .constants import DEFAULT_POLL_INTERVAL_SECONDS, DEFAULT_POLL_MAX_ATTEMPTS, LOGGER
from .errors import PollTransportError, SubmissionError
from .http import transport_error_payload, upstream_error_payload

AUTOFILLS_PATH = "/v1/autofills"


class JobStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class JobResult:
    job_id: str
    status: JobStatus
    attempts: int
    design_url: str | None = None
    thumbnail_url: str | None = None
    design_id: str | None = None
    upstream_status: str | None = None
    error: Any = None

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.SUCCESS


def build_field_data(fields: dict[str, Any]) -> dict[str, dict]:
    data: dict[str, dict] = {}
    for name, value in fields.items():
        if isinstance(value, dict) and "type" in value:
            data[name] = value
        else:
            data[name] = {"type": "text", "text": "" if value is None else str(value)}
    return data


class AutofillPoller:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self.interval_seconds = interval_seconds
        self.max_attempts = max(1, max_attempts)
        self._sleep = sleep

    async def submit(
        self,
        template_id: str,
        field_data: dict[str, Any],
        access_token: str,
        *,
        title: str | None = None,
    ) -> str:
        body: dict[str, Any] = {
            "brand_template_id": template_id,
            "data": build_field_data(field_data),
        }
        if title:
            body["title"] = title

        try:
            response = await self._client.post(
                AUTOFILLS_PATH,
                json=body,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as error:
            raise SubmissionError(
                f"Autofill job creation failed with status {error.response.status_code}",
                details=upstream_error_payload(error.response),
            ) from error
        except httpx.HTTPError as error:
            raise SubmissionError(
                "Autofill job creation failed before a response was received",
                details=transport_error_payload(error),
            ) from error

        try:
            job = _job_from_response(response)
        except ValueError as error:
            raise SubmissionError(
                "Autofill job creation returned an unreadable response",
                details={"upstream": response.text},
            ) from error
        job_id = job.get("id")
        if not isinstance(job_id, str) or not job_id:
            raise SubmissionError(
                "Canva did not return an autofill job id.",
                details={"upstream": job},
            )
        LOGGER.info("Autofill job created job_id=%s template_id=%s", job_id, template_id)
        return job_id

    async def await_completion(self, job_id: str, access_token: str) -> JobResult:
        # Own task so cancelling the awaiting request also stops the loop.
        task = asyncio.create_task(self._poll(job_id, access_token))
        return await task

    async def _poll(self, job_id: str, access_token: str) -> JobResult:
        attempts = 0
        last_status = JobStatus.IN_PROGRESS

        while attempts < self.max_attempts:
            await self._sleep(self.interval_seconds)
            attempts += 1

            try:
                job = await self._fetch_job(job_id, access_token)
            except PollTransportError as error:
                LOGGER.warning(
                    "Autofill status check failed job_id=%s attempt=%s: %s",
                    job_id,
                    attempts,
                    error.message,
                )
                return JobResult(
                    job_id=job_id,
                    status=last_status,
                    attempts=attempts,
                    error=error.to_payload(),
                )

            raw_status = job.get("status")
            LOGGER.info(
                "Autofill job_id=%s attempt=%s/%s status=%s",
                job_id,
                attempts,
                self.max_attempts,
                raw_status,
            )

            if raw_status == JobStatus.SUCCESS.value:
                design = _mapping(_mapping(job.get("result")).get("design"))
                thumbnail = _mapping(design.get("thumbnail"))
                if not design:
                    LOGGER.warning("Autofill job_id=%s succeeded without a design object", job_id)
                return JobResult(
                    job_id=job_id,
                    status=JobStatus.SUCCESS,
                    attempts=attempts,
                    design_url=_text(design.get("url")),
                    thumbnail_url=_text(thumbnail.get("url")),
                    design_id=_text(design.get("id")),
                    upstream_status=raw_status,
                )

            if raw_status != JobStatus.IN_PROGRESS.value:
                return JobResult(
                    job_id=job_id,
                    status=JobStatus.FAILED,
                    attempts=attempts,
                    upstream_status=raw_status,
                    error=job.get("error") or f"Autofill job ended with status {raw_status!r}",
                )

        LOGGER.warning("Autofill job_id=%s timed out after %s attempts", job_id, attempts)
        return JobResult(
            job_id=job_id,
            status=JobStatus.TIMEOUT,
            attempts=attempts,
            upstream_status=last_status.value,
            error=(
                "Autofill job did not finish within "
                f"{self.max_attempts * self.interval_seconds:g} seconds"
            ),
        )

    async def _fetch_job(self, job_id: str, access_token: str) -> dict:
        try:
            response = await self._client.get(
                f"{AUTOFILLS_PATH}/{job_id}",
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as error:
            raise PollTransportError(
                f"Autofill status check failed with status {error.response.status_code}",
                details=upstream_error_payload(error.response),
            ) from error
        except httpx.HTTPError as error:
            raise PollTransportError(
                "Autofill status check failed before a response was received",
                details=transport_error_payload(error),
            ) from error

        try:
            return _job_from_response(response)
        except ValueError as error:
            raise PollTransportError(
                "Autofill status response was not valid JSON",
                details={"upstream": response.text},
            ) from error


def _job_from_response(response: httpx.Response) -> dict:
    payload = response.json()
    if not isinstance(payload, dict):
        raise ValueError("Expected a JSON object.")
    job = payload.get("job", payload)
    if not isinstance(job, dict):
        raise ValueError("Expected a job object.")
    return job


def _mapping(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None
