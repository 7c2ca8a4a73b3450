from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

import cloudinary.utils
import httpx

from .constants import DEFAULT_TIMEOUT_SECONDS, LOGGER
from .env import CloudinarySettings
from .errors import UploadError
from .http import transport_error_payload, upstream_error_payload


@dataclass
class UploadResult:
    secure_url: str
    public_id: str


class Uploader(ABC):
    @abstractmethod
    async def upload(self, url: str, context: dict[str, str]) -> UploadResult:
        raise NotImplementedError


class CloudinaryUploader(Uploader):
    def __init__(
        self,
        settings: CloudinarySettings,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._client = client
        self._timeout = timeout
        self._clock = clock

    @property
    def upload_url(self) -> str:
        return cloudinary.utils.cloudinary_api_url(
            "upload",
            cloud_name=self._settings.cloud_name,
            resource_type="image",
        )

    def _form(self, url: str, context: dict[str, str]) -> dict[str, str]:
        params = {"timestamp": str(int(self._clock()))}
        if self._settings.folder:
            params["folder"] = self._settings.folder
        if context:
            params["context"] = cloudinary.utils.encode_context(context)

        return {
            **params,
            "file": url,
            "api_key": self._settings.api_key,
            "signature": cloudinary.utils.api_sign_request(params, self._settings.api_secret),
        }

    async def upload(self, url: str, context: dict[str, str]) -> UploadResult:
        own_client = self._client is None
        http_client = self._client or httpx.AsyncClient(timeout=self._timeout)

        try:
            response = await http_client.post(self.upload_url, data=self._form(url, context))
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as error:
            raise UploadError(
                f"Upload failed with status {error.response.status_code}",
                details=upstream_error_payload(error.response),
            ) from error
        except httpx.HTTPError as error:
            raise UploadError(
                "Upload failed before a response was received",
                details=transport_error_payload(error),
            ) from error
        except ValueError as error:
            raise UploadError("Upload returned an unreadable response") from error
        finally:
            if own_client:
                await http_client.aclose()

        secure_url = payload.get("secure_url") if isinstance(payload, dict) else None
        public_id = payload.get("public_id") if isinstance(payload, dict) else None
        if not secure_url or not public_id:
            raise UploadError("Upload response missing secure_url or public_id.", details=payload)

        LOGGER.info("Uploaded thumbnail public_id=%s", public_id)
        return UploadResult(secure_url=secure_url, public_id=public_id)
