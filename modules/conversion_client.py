"""
Clients the page-count resolver uses to reach the conversion service.

Two interchangeable implementations of ``count_pages(content, filename)``:

    LocalConversionClient  - calls a ConversionService in this process
    HttpConversionClient   - POSTs to a remote /convert-docx endpoint

Both raise PrintQueueError subclasses on failure; the resolver turns any
failure into a one-page default.
"""

from __future__ import annotations

import mimetypes
from typing import Optional

import requests

from core.converter import ConversionService
from core.exceptions import (
    ConversionFailed,
    ExternalOperationFailure,
    OperationTimeout,
    PrintQueueError,
    UnavailableDependency,
)
from logging_config import get_logger


logger = get_logger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"


class LocalConversionClient:
    """Counts pages with an in-process ConversionService."""

    def __init__(self, service: ConversionService):
        self._service = service

    def count_pages(self, content: bytes, filename: str) -> int:
        return self._service.convert(content, filename).page_count


class HttpConversionClient:
    """
    Counts pages by calling a remote conversion endpoint.

    Response contract: ``{"ok": true, "pages": <int>}`` on 200; any other
    status carries ``{"error": ..., "code": ...}``.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 90.0,
        session: Optional[requests.Session] = None,
    ):
        self._endpoint = f"{base_url.rstrip('/')}/convert-docx"
        self._timeout = timeout_seconds
        self._session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def count_pages(self, content: bytes, filename: str) -> int:
        content_type = mimetypes.guess_type(filename)[0]
        if content_type not in (DOCX_MIME, DOC_MIME):
            content_type = DOCX_MIME if filename.lower().endswith(".docx") else DOC_MIME

        try:
            response = self._session.post(
                self._endpoint,
                files={"file": (filename, content, content_type)},
                timeout=self._timeout,
            )
        except requests.exceptions.Timeout as e:
            raise OperationTimeout("convert-docx request", self._timeout) from e
        except requests.exceptions.ConnectionError as e:
            raise UnavailableDependency(f"Conversion service unreachable at {self._endpoint}") from e
        except requests.exceptions.RequestException as e:
            raise ExternalOperationFailure(f"Conversion request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            snippet = response.text[:200]
            raise ExternalOperationFailure(f"Invalid JSON from conversion service: {snippet}") from e

        if not response.ok:
            error = payload.get("error", "unknown error") if isinstance(payload, dict) else "unknown error"
            raise ConversionFailed(f"HTTP {response.status_code}: {error}")

        pages = payload.get("pages") if isinstance(payload, dict) else None
        if isinstance(pages, bool) or not isinstance(pages, int) or pages < 1:
            raise ExternalOperationFailure(f"Malformed conversion payload: pages={pages!r}")

        return pages


def build_conversion_client(config, service: Optional[ConversionService] = None):
    """
    Choose a client from configuration.

    Uses the HTTP client when CONVERSION_SERVICE_URL is set, otherwise the
    in-process service.
    """
    url = config.get("CONVERSION_SERVICE_URL")
    if url:
        logger.info(f"Using remote conversion service at {url}")
        return HttpConversionClient(url, timeout_seconds=config.get("CONVERSION_CLIENT_TIMEOUT", 90.0))

    if service is None:
        raise PrintQueueError("No conversion service configured")
    return LocalConversionClient(service)
