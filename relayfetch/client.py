from __future__ import annotations

import logging
from collections.abc import Callable

from .connection import send_request
from .errors import FetchError
from .models import Blob, Request, Response
from .pipeline import (
    body_to_blob,
    body_to_json,
    body_to_text,
    check_status,
    read_body,
    return_body,
)
from .proxy import DEFAULT_PROXY_PATH, build_proxy_request
from .utils import Callback, notify

logger = logging.getLogger(__name__)

Transform = Callable[[Response], Response]


def _identity(response: Response) -> Response:
    return response


class BaseFetcher:
    """
    Configuration and request construction shared by both fetchers.

    Args:
        base_url: Base that relative URLs (and the proxy path) resolve against
        proxy_path: Path or URL of the relay used by the ``*_proxy`` methods
        timeout: Socket timeout in seconds, None to wait indefinitely
        verify: Whether to verify TLS certificates
        auto_decompress: Decode gzip/deflate/br response bodies (off by default)
    """

    def __init__(
        self,
        base_url: str | None = None,
        proxy_path: str = DEFAULT_PROXY_PATH,
        timeout: float | None = None,
        verify: bool = True,
        auto_decompress: bool = False,
    ) -> None:
        self.base_url = base_url
        self.proxy_path = proxy_path
        self.timeout = timeout
        self.verify = verify
        self.auto_decompress = auto_decompress

    def _direct(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
    ) -> Callable[[], Request]:
        return lambda: Request(url, method=method, headers=headers, body=body)

    def _proxied(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        allowed_mimes: list[str] | None = None,
    ) -> Callable[[], Request]:
        return lambda: build_proxy_request(
            url,
            proxy_path=self.proxy_path,
            base_url=self.base_url,
            method=method,
            headers=headers,
            body=body,
            allowed_mimes=allowed_mimes,
        )


class Fetcher(BaseFetcher):
    """
    Blocking HTTP client returning response bodies as bytes, text, JSON or Blob.

    Every call opens one connection, checks the status, reads the whole body
    and transforms it. Nothing is shared between calls, so one instance can
    serve several threads.

    Every method accepts an optional ``callback(error, result)`` that receives
    the outcome in addition to the normal return value or exception.

    The ``get_*_proxy`` methods take the same ``method``, ``headers`` and
    ``body`` as :meth:`request_proxy`; they only differ in the transformer.
    """

    def _fetch(
        self,
        label: str,
        url: str,
        request: Callable[[], Request],
        transform: Transform,
        callback: Callback | None,
    ) -> object:
        logger.debug("%s for %s", label, url)
        try:
            streaming = send_request(
                request(),
                base_url=self.base_url,
                timeout=self.timeout,
                verify=self.verify,
                auto_decompress=self.auto_decompress,
            )
            try:
                check_status(streaming)
            except FetchError:
                streaming.close()
                raise
            result = return_body(transform(read_body(streaming)))
        except FetchError as exc:
            exc.add_context(f"Error {label} for {url}")
            logger.debug("%s", exc)
            notify(callback, exc)
            raise
        notify(callback, None, result)
        return result

    def get_raw(self, url: str, callback: Callback | None = None) -> bytes:
        """Retrieve any resource as raw bytes (HTTP GET)."""
        return self._fetch("getting raw", url, self._direct(url), _identity, callback)

    def get_blob(self, url: str, callback: Callback | None = None) -> Blob:
        """Retrieve any resource as a :class:`Blob` tagged with its content type."""
        return self._fetch("getting Blob", url, self._direct(url), body_to_blob, callback)

    def get_text(self, url: str, callback: Callback | None = None) -> str:
        """Retrieve any resource as UTF-8 text."""
        return self._fetch("getting text", url, self._direct(url), body_to_text, callback)

    def get_json(self, url: str, callback: Callback | None = None) -> object:
        """Retrieve a JSON document and return the parsed value."""
        return self._fetch("getting JSON", url, self._direct(url), body_to_json, callback)

    def request(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        callback: Callback | None = None,
    ) -> bytes:
        """
        Make an HTTP request and return the response body as bytes.

        Args:
            url: Request URL
            method: HTTP method (default: GET)
            headers: Additional headers, e.g. ``{"content-type": "application/json"}``
            body: Request body
            callback: Optional ``callback(error, result)``

        Returns:
            Response body bytes
        """
        return self._fetch(
            "requesting",
            url,
            self._direct(url, method, headers, body),
            _identity,
            callback,
        )

    def get_raw_proxy(
        self,
        url: str,
        allowed_mimes: list[str] | None = None,
        headers: dict[str, str] | None = None,
        method: str = "GET",
        body: bytes | None = None,
        callback: Callback | None = None,
    ) -> bytes:
        """Retrieve any resource as raw bytes through the relay."""
        return self._fetch(
            "getting raw via proxy",
            url,
            self._proxied(url, method, headers, body, allowed_mimes),
            _identity,
            callback,
        )

    def get_blob_proxy(
        self,
        url: str,
        allowed_mimes: list[str] | None = None,
        headers: dict[str, str] | None = None,
        method: str = "GET",
        body: bytes | None = None,
        callback: Callback | None = None,
    ) -> Blob:
        """Retrieve any resource as a :class:`Blob` through the relay."""
        return self._fetch(
            "getting Blob via proxy",
            url,
            self._proxied(url, method, headers, body, allowed_mimes),
            body_to_blob,
            callback,
        )

    def get_text_proxy(
        self,
        url: str,
        allowed_mimes: list[str] | None = None,
        headers: dict[str, str] | None = None,
        method: str = "GET",
        body: bytes | None = None,
        callback: Callback | None = None,
    ) -> str:
        """Retrieve any resource as text through the relay."""
        return self._fetch(
            "getting text via proxy",
            url,
            self._proxied(url, method, headers, body, allowed_mimes),
            body_to_text,
            callback,
        )

    def get_json_proxy(
        self,
        url: str,
        allowed_mimes: list[str] | None = None,
        headers: dict[str, str] | None = None,
        method: str = "GET",
        body: bytes | None = None,
        callback: Callback | None = None,
    ) -> object:
        """Retrieve a JSON document through the relay."""
        return self._fetch(
            "getting JSON via proxy",
            url,
            self._proxied(url, method, headers, body, allowed_mimes),
            body_to_json,
            callback,
        )

    def request_proxy(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        allowed_mimes: list[str] | None = None,
        callback: Callback | None = None,
    ) -> bytes:
        """
        Make an HTTP request through the relay and return the body as bytes.

        Args:
            url: Target URL, resolved to absolute form before wrapping
            method: HTTP method the relay should use (default: GET)
            headers: Headers the relay should send
            body: Request body, sent base64-encoded in the envelope
            allowed_mimes: MIME types the relay may return
            callback: Optional ``callback(error, result)``
        """
        return self._fetch(
            "requesting via proxy",
            url,
            self._proxied(url, method, headers, body, allowed_mimes),
            _identity,
            callback,
        )

    def close(self) -> None:
        """No-op: connections never outlive a call."""

    def __enter__(self) -> Fetcher:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
