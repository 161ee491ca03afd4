"""
Document Webhook Client

Sends a raw document to the document-understanding webhook and returns
the extracted payload.

DESIGN DECISION: The webhook is a black box. We send the file exactly
once with a hard timeout and never retry: a second POST could create a
second extraction on the remote side, and the user can simply upload
again.

The response body is messy in practice. It may be:
1. The payload itself as JSON
2. JSON wrapped in `body` or `fields.body`
3. Any of the above with the payload as a JSON *string*
Anything we cannot parse degrades to an empty summary rather than failing
the upload.
"""

import asyncio
import json
from pathlib import PurePath
from typing import Any, Optional

import httpx
import structlog

from ledgerflow.config import get_settings
from ledgerflow.models.records import FileType

logger = structlog.get_logger(__name__)


IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "heic"}

EMPTY_PAYLOAD: dict[str, Any] = {
    "summary": {},
    "ui_visibility": {},
    "dashboard_impact": {},
}


class WebhookError(Exception):
    """Base exception for webhook errors."""
    pass


class WebhookTimeoutError(WebhookError):
    """The webhook did not answer within the configured timeout."""
    pass


class WebhookResponseError(WebhookError):
    """The webhook answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)


def file_extension(file_name: str) -> str:
    return PurePath(file_name).suffix.lstrip(".").lower()


def coarse_file_type(file_name: str) -> FileType:
    """PDF, IMAGE or OTHER, decided by extension."""
    extension = file_extension(file_name)
    if extension == "pdf":
        return FileType.PDF
    if extension in IMAGE_EXTENSIONS:
        return FileType.IMAGE
    return FileType.OTHER


def parse_webhook_body(text: str) -> tuple[dict[str, Any], bool]:
    """
    Unwrap a webhook response body.

    Returns:
        (payload, malformed) - malformed is True when the body could not
        be decoded and an empty payload was substituted
    """
    if not text or not text.strip():
        return {}, False

    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        return dict(EMPTY_PAYLOAD), True

    data = result
    if isinstance(result, dict):
        fields = result.get("fields")
        data = (
            result.get("body")
            or (fields.get("body") if isinstance(fields, dict) else None)
            or result
        )

    if isinstance(data, str) and data.strip().startswith("{"):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("webhook_body_string_not_json")

    if not isinstance(data, dict):
        return dict(EMPTY_PAYLOAD), True

    return data, False


class DocumentWebhookClient:
    """
    Async client for the document-understanding webhook.

    IMPORTANT BOUNDARIES:
    1. This client ONLY transports - it does not classify or validate
    2. Transport failures raise WebhookError; malformed bodies do not
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        source: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if url is None or timeout_seconds is None or source is None:
            settings = get_settings().webhook
            url = url or settings.url
            timeout_seconds = timeout_seconds or settings.timeout_seconds
            source = source or settings.source

        self._url = url
        self._timeout_seconds = timeout_seconds
        self._source = source
        self._transport = transport

    def _form_fields(self, file_name: str, content_type: str) -> dict[str, str]:
        return {
            "fileName": file_name,
            "extension": file_extension(file_name),
            "fileType": content_type,
            "file_type": coarse_file_type(file_name).value,
            "source": self._source,
        }

    async def _post(
        self,
        file_bytes: bytes,
        file_name: str,
        content_type: str,
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout_seconds),
            transport=self._transport,
        ) as client:
            return await client.post(
                self._url,
                data=self._form_fields(file_name, content_type),
                files={"file": (file_name, file_bytes, content_type)},
            )

    async def submit(
        self,
        file_bytes: bytes,
        file_name: str,
        content_type: Optional[str] = None,
    ) -> tuple[dict[str, Any], bool]:
        """
        Upload one document.

        Returns:
            (payload, malformed) as parse_webhook_body

        Raises:
            WebhookTimeoutError: If no answer arrives in time
            WebhookResponseError: On a non-2xx status
            WebhookError: On any other transport failure
        """
        content_type = content_type or "application/octet-stream"
        logger.info("webhook_upload_started", file_name=file_name, size=len(file_bytes))

        try:
            response = await asyncio.wait_for(
                self._post(file_bytes, file_name, content_type),
                timeout=self._timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise WebhookTimeoutError(
                f"Upload timed out after {self._timeout_seconds:g}s"
            )
        except httpx.HTTPError as e:
            raise WebhookError(f"Upload failed: {e}")

        logger.info("webhook_response", file_name=file_name, status=response.status_code)

        if not response.is_success:
            raise WebhookResponseError(
                response.status_code,
                f"Upload failed with status: {response.status_code}",
            )

        payload, malformed = parse_webhook_body(response.text)
        if malformed:
            logger.warning("webhook_response_not_json", file_name=file_name)
        return payload, malformed
