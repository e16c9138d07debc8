"""
HTTP transport.

The lifecycle engine talks to the backend through the Transport protocol:

- upload(file) -> file identifier
- trigger_processing(config, file_identifier) -> rows
- query_rows(config, file_identifier=None) -> rows

AiohttpTransport is the production implementation. Every request carries
``X-Suppress-Error-Toast: true`` so background polling failures stay silent
in the UI; non-2xx answers are mapped through ``error_from_status``.
"""

from __future__ import annotations

import asyncio
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import aiofiles
import aiohttp

from .config.service import JobServiceConfig
from .config.transport import TransportConfig
from .errors import (
    ErrorContext,
    TransportError,
    TransportTimeoutError,
    TransportUnavailableError,
    error_from_status,
)
from .logging import get_logger, truncate_for_log
from .types import RawRow

SUPPRESS_ERROR_TOAST_HEADER = "X-Suppress-Error-Toast"


@dataclass
class UploadFile:
    """A file to upload, held in memory."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @classmethod
    async def from_path(cls, path: str | Path, content_type: str | None = None) -> UploadFile:
        path = Path(path)
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content=content,
            content_type=content_type or guessed or "application/octet-stream",
        )


@runtime_checkable
class Transport(Protocol):
    async def upload(self, file: UploadFile) -> str: ...

    async def trigger_processing(self, config: JobServiceConfig, file_identifier: str) -> list[RawRow]: ...

    async def query_rows(self, config: JobServiceConfig, file_identifier: str | None = None) -> list[RawRow]: ...


def parse_rows(payload: Any) -> list[RawRow]:
    """Decode a backend row list. An empty body counts as no rows."""
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise TransportError(f"Expected a list of rows, got {type(payload).__name__}")
    return [RawRow.from_dict(item) for item in payload if isinstance(item, dict)]


class AiohttpTransport:
    """
    Transport over a shared aiohttp session.

    Example:
        ```python
        async with AiohttpTransport(TransportConfig(base_url="https://host/api")) as transport:
            file_identifier = await transport.upload(await UploadFile.from_path("A.xlsx"))
        ```
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.config = config or TransportConfig()
        self.session = session
        self._owns_session = session is None
        self.logger = get_logger("job_tracker.transport")

    async def __aenter__(self) -> AiohttpTransport:
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            )
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        if self.session is not None and self._owns_session and not self.session.closed:
            await self.session.close()
        self.session = None

    def _headers(self) -> dict[str, str]:
        headers = dict(self.config.headers)
        if self.config.suppress_error_toast:
            headers[SUPPRESS_ERROR_TOAST_HEADER] = "true"
        return headers

    def _url(self, config: JobServiceConfig, endpoint: str) -> str:
        return f"{self.config.base_url}{config.api_base_path}/{endpoint}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        params: dict[str, str] | None = None,
        data: Any = None,
    ) -> Any:
        session = self._ensure_session()
        context = ErrorContext(operation=operation, extra={"url": url})
        try:
            async with session.request(method, url, params=params, data=data, headers=self._headers()) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise error_from_status(
                        response.status,
                        truncate_for_log(body) or response.reason or "HTTP error",
                        context=context,
                    )
                return await response.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise TransportTimeoutError(f"{method} {url} timed out", context=context, cause=exc) from exc
        except aiohttp.ClientConnectionError as exc:
            raise TransportUnavailableError(f"{method} {url} failed: {exc}", context=context, cause=exc) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"{method} {url} failed: {exc}", context=context, cause=exc) from exc
        except ValueError as exc:
            raise TransportError(f"{method} {url} returned invalid JSON", context=context, cause=exc) from exc

    async def upload(self, file: UploadFile) -> str:
        """POST the file as multipart field ``files``; returns the stored file name."""
        form = aiohttp.FormData()
        form.add_field("files", file.content, filename=file.name, content_type=file.content_type)
        url = f"{self.config.base_url}{self.config.upload_path}"
        payload = await self._request("POST", url, operation="upload", data=form)
        if isinstance(payload, dict) and payload.get("filename"):
            return str(payload["filename"])
        return file.name

    async def trigger_processing(self, config: JobServiceConfig, file_identifier: str) -> list[RawRow]:
        payload = await self._request(
            "PUT",
            self._url(config, config.endpoint_name),
            operation="trigger_processing",
            params={"filename": file_identifier},
        )
        return parse_rows(payload)

    async def query_rows(self, config: JobServiceConfig, file_identifier: str | None = None) -> list[RawRow]:
        """Rows of one file, or every recent row (overview query) when no file is given."""
        if file_identifier is not None:
            url = self._url(config, config.search_endpoint_name)
            params = {"filename": file_identifier}
        else:
            url = self._url(config, config.search_file_endpoint_name)
            params = {"filename": ""}
            if config.task_name:
                params["task"] = config.task_name
        payload = await self._request("GET", url, operation="query_rows", params=params)
        return parse_rows(payload)


__all__ = [
    "UploadFile",
    "Transport",
    "AiohttpTransport",
    "parse_rows",
    "SUPPRESS_ERROR_TOAST_HEADER",
]
