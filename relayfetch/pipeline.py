"""
Stages of the fetch pipeline.

Every call runs ``check_status`` on the unread response, drains it with
``read_body`` (or ``aread_body``), applies at most one transformer and finally
``return_body``. Stages return new values and never mutate their input.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol, TypeVar

from .errors import ConnectionError, HTTPError, InvalidJSONError
from .models import DEFAULT_MIME_TYPE, Blob, Response
from .streaming import AsyncStreamingResponse, StreamingResponse

logger = logging.getLogger(__name__)


class _HasStatus(Protocol):
    status_code: int
    reason: str


S = TypeVar("S", bound=_HasStatus)


def check_status(response: S) -> S:
    """
    Fail fast unless the response status is 2xx.

    Raises:
        ConnectionError: status 0, no HTTP response was obtained
        HTTPError: any status outside 200-299
    """
    if response.status_code == 0:
        raise ConnectionError("HttpConnectionError")
    if response.status_code < 200 or response.status_code > 299:
        raise HTTPError(
            f"HttpStatus{response.status_code}",
            status_code=response.status_code,
            reason=response.reason,
        )
    return response


def read_body(streaming: StreamingResponse) -> Response:
    """Drain the stream into one bytes buffer and close it."""
    try:
        body = streaming.read()
    finally:
        streaming.close()
    logger.debug("read %d bytes (status %d)", len(body), streaming.status_code)
    return Response(
        streaming.status_code,
        streaming.reason,
        streaming.http_version,
        streaming.raw_headers,
        body,
    )


async def aread_body(streaming: AsyncStreamingResponse) -> Response:
    """Async counterpart of :func:`read_body`."""
    try:
        body = await streaming.read()
    finally:
        await streaming.close()
    logger.debug("read %d bytes (status %d)", len(body), streaming.status_code)
    return Response(
        streaming.status_code,
        streaming.reason,
        streaming.http_version,
        streaming.raw_headers,
        body,
    )


def _require_bytes(response: Response, stage: str) -> bytes:
    body = response.body
    if not isinstance(body, bytes):
        raise TypeError(f"{stage} expects a bytes body, got {type(body).__name__}")
    return body


def body_to_text(response: Response) -> Response:
    body = _require_bytes(response, "body_to_text")
    return response.with_body(body.decode("utf-8", errors="replace"))


def body_to_json(response: Response) -> Response:
    if not isinstance(response.body, str):
        response = body_to_text(response)
    try:
        value = json.loads(response.body)
    except json.JSONDecodeError as exc:
        raise InvalidJSONError(
            "NotAValidJson",
            status_code=response.status_code,
            reason=response.reason,
        ) from exc
    return response.with_body(value)


def body_to_blob(response: Response) -> Response:
    body = _require_bytes(response, "body_to_blob")
    return response.with_body(Blob(body, response.content_type or DEFAULT_MIME_TYPE))


def return_body(response: Response) -> object:
    return response.body
