from __future__ import annotations

import asyncio
import logging
import ssl
from collections.abc import Callable

from .client import BaseFetcher, Transform, _identity
from .connection import build_request_bytes, parse_header_line, parse_status_line
from .errors import ConnectionError, FetchError, ProtocolError, TLSNegotiationError
from .headers import build_request_headers
from .models import Blob, Request
from .pipeline import (
    aread_body,
    body_to_blob,
    body_to_json,
    body_to_text,
    check_status,
    return_body,
)
from .streaming import AsyncStreamingResponse, _body_framing
from .utils import Callback, notify, parse_url, resolve_url

logger = logging.getLogger(__name__)

__all__ = ["AsyncFetcher", "asend_request"]


async def _open_connection(
    host: str,
    port: int,
    scheme: str,
    timeout: float | None,
    verify: bool,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    ssl_ctx: ssl.SSLContext | None = None
    if scheme == "https":
        ssl_ctx = ssl.create_default_context()
        if not verify:
            ssl_ctx.check_hostname = False
            ssl_ctx.verify_mode = ssl.CERT_NONE
    try:
        return await asyncio.wait_for(
            asyncio.open_connection(
                host,
                port,
                ssl=ssl_ctx,
                server_hostname=host if ssl_ctx else None,
            ),
            timeout=timeout,
        )
    except ssl.SSLError as exc:
        raise TLSNegotiationError(f"TLS handshake failed: {exc}") from exc
    except (OSError, asyncio.TimeoutError) as exc:
        raise ConnectionError(f"TCP connection failed: {exc}") from exc


async def asend_request(
    request: Request,
    base_url: str | None = None,
    timeout: float | None = None,
    verify: bool = True,
    auto_decompress: bool = False,
) -> AsyncStreamingResponse:
    """
    Open one connection for ``request`` and return the unread response.

    Same contract as :func:`relayfetch.connection.send_request`, over asyncio
    streams.
    """
    url = resolve_url(request.url, base_url)
    parsed, host, port, path = parse_url(url)
    headers = build_request_headers(host, port, parsed.scheme, request.headers, request.body)

    logger.debug("%s %s", request.method, url)
    reader, writer = await _open_connection(host, port, parsed.scheme, timeout, verify)
    try:
        writer.write(build_request_bytes(request.method, path, headers, request.body))
        await writer.drain()

        version, status_code, reason = parse_status_line(await reader.readline())
        raw_headers: list[tuple[str, str]] = []
        while True:
            line = await reader.readline()
            if line in (b"\r\n", b"\n", b""):
                break
            raw_headers.append(parse_header_line(line))
        content_length, chunked = _body_framing(raw_headers, request.method, status_code)
    except OSError as exc:
        writer.close()
        raise ConnectionError(f"Request failed: {exc}") from exc
    except ProtocolError:
        writer.close()
        raise

    logger.debug("%s %s -> %d %s", request.method, url, status_code, reason)
    return AsyncStreamingResponse(
        status_code,
        reason,
        version,
        raw_headers,
        reader,
        writer,
        content_length=content_length,
        chunked=chunked,
        auto_decompress=auto_decompress,
    )


class AsyncFetcher(BaseFetcher):
    """
    Async HTTP client returning response bodies as bytes, text, JSON or Blob.

    Same operations as :class:`relayfetch.Fetcher`, as coroutines. Calls are
    independent and may run concurrently, e.g. under ``asyncio.gather``.

    Args:
        base_url: Base that relative URLs (and the proxy path) resolve against
        proxy_path: Path or URL of the relay used by the ``*_proxy`` methods
        timeout: Connect timeout in seconds, None to wait indefinitely
        verify: Whether to verify TLS certificates
        auto_decompress: Decode gzip/deflate/br response bodies (off by default)
    """

    async def _fetch(
        self,
        label: str,
        url: str,
        request: Callable[[], Request],
        transform: Transform,
        callback: Callback | None,
    ) -> object:
        logger.debug("%s for %s", label, url)
        try:
            streaming = await asend_request(
                request(),
                base_url=self.base_url,
                timeout=self.timeout,
                verify=self.verify,
                auto_decompress=self.auto_decompress,
            )
            try:
                check_status(streaming)
            except FetchError:
                await streaming.close()
                raise
            result = return_body(transform(await aread_body(streaming)))
        except FetchError as exc:
            exc.add_context(f"Error {label} for {url}")
            logger.debug("%s", exc)
            notify(callback, exc)
            raise
        notify(callback, None, result)
        return result

    async def get_raw(self, url: str, callback: Callback | None = None) -> bytes:
        return await self._fetch("getting raw", url, self._direct(url), _identity, callback)

    async def get_blob(self, url: str, callback: Callback | None = None) -> Blob:
        return await self._fetch("getting Blob", url, self._direct(url), body_to_blob, callback)

    async def get_text(self, url: str, callback: Callback | None = None) -> str:
        return await self._fetch("getting text", url, self._direct(url), body_to_text, callback)

    async def get_json(self, url: str, callback: Callback | None = None) -> object:
        return await self._fetch("getting JSON", url, self._direct(url), body_to_json, callback)

    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        callback: Callback | None = None,
    ) -> bytes:
        return await self._fetch(
            "requesting",
            url,
            self._direct(url, method, headers, body),
            _identity,
            callback,
        )

    async def get_raw_proxy(
        self,
        url: str,
        allowed_mimes: list[str] | None = None,
        headers: dict[str, str] | None = None,
        method: str = "GET",
        body: bytes | None = None,
        callback: Callback | None = None,
    ) -> bytes:
        return await self._fetch(
            "getting raw via proxy",
            url,
            self._proxied(url, method, headers, body, allowed_mimes),
            _identity,
            callback,
        )

    async def get_blob_proxy(
        self,
        url: str,
        allowed_mimes: list[str] | None = None,
        headers: dict[str, str] | None = None,
        method: str = "GET",
        body: bytes | None = None,
        callback: Callback | None = None,
    ) -> Blob:
        return await self._fetch(
            "getting Blob via proxy",
            url,
            self._proxied(url, method, headers, body, allowed_mimes),
            body_to_blob,
            callback,
        )

    async def get_text_proxy(
        self,
        url: str,
        allowed_mimes: list[str] | None = None,
        headers: dict[str, str] | None = None,
        method: str = "GET",
        body: bytes | None = None,
        callback: Callback | None = None,
    ) -> str:
        return await self._fetch(
            "getting text via proxy",
            url,
            self._proxied(url, method, headers, body, allowed_mimes),
            body_to_text,
            callback,
        )

    async def get_json_proxy(
        self,
        url: str,
        allowed_mimes: list[str] | None = None,
        headers: dict[str, str] | None = None,
        method: str = "GET",
        body: bytes | None = None,
        callback: Callback | None = None,
    ) -> object:
        return await self._fetch(
            "getting JSON via proxy",
            url,
            self._proxied(url, method, headers, body, allowed_mimes),
            body_to_json,
            callback,
        )

    async def request_proxy(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        allowed_mimes: list[str] | None = None,
        callback: Callback | None = None,
    ) -> bytes:
        return await self._fetch(
            "requesting via proxy",
            url,
            self._proxied(url, method, headers, body, allowed_mimes),
            _identity,
            callback,
        )

    async def close(self) -> None:
        """No-op: connections never outlive a call."""

    async def __aenter__(self) -> AsyncFetcher:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
