from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterator
from typing import TYPE_CHECKING

from .compression import decode_body
from .errors import ConnectionError, ProtocolError

if TYPE_CHECKING:
    import socket
    import ssl


def _body_framing(
    headers: list[tuple[str, str]],
    method: str,
    status_code: int,
) -> tuple[int | None, bool]:
    """Return ``(content_length, chunked)`` for a response head."""
    if method == "HEAD" or 100 <= status_code < 200 or status_code in (204, 304):
        return 0, False
    header_map = {k.lower(): v for k, v in headers}
    if "chunked" in header_map.get("transfer-encoding", "").lower():
        return None, True
    if "content-length" in header_map:
        try:
            return int(header_map["content-length"]), False
        except ValueError as exc:
            raise ProtocolError("Invalid Content-Length") from exc
    return None, False


class StreamingResponse:
    """
    HTTP response whose body is still on the socket.

    Use iter_bytes() to consume the body incrementally. The response must be
    closed after use to release the connection.
    """

    def __init__(
        self,
        status_code: int,
        reason: str,
        http_version: str,
        headers: list[tuple[str, str]],
        sock: socket.socket | ssl.SSLSocket,
        content_length: int | None,
        chunked: bool,
        auto_decompress: bool = False,
        chunk_size: int = 8192,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self.http_version = http_version
        self.raw_headers: list[tuple[str, str]] = headers
        self._sock = sock
        self._content_length = content_length
        self._chunked = chunked
        self._auto_decompress = auto_decompress
        self._chunk_size = chunk_size
        self._closed = False

    @property
    def headers(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for name, value in self.raw_headers:
            out[name.lower()] = value
        return out

    @property
    def content_encoding(self) -> str:
        return self.headers.get("content-encoding", "") if self._auto_decompress else ""

    def iter_bytes(self, chunk_size: int | None = None) -> Iterator[bytes]:
        """
        Iterate over the raw (still content-encoded) response body in chunks.

        Raises:
            ProtocolError: if the stream ends before the declared length.
        """
        if self._closed:
            raise RuntimeError("Response has been closed")

        size = chunk_size or self._chunk_size
        try:
            if self._chunked:
                yield from self._iter_chunked(size)
            elif self._content_length is not None:
                yield from self._iter_content_length(size)
            else:
                yield from self._iter_until_close(size)
        except OSError as exc:
            raise ConnectionError(f"Receive failed: {exc}") from exc

    def _iter_chunked(self, chunk_size: int) -> Iterator[bytes]:
        while True:
            line = self._readline()
            if not line:
                raise ProtocolError("Unexpected EOF while reading chunk size")
            try:
                size = int(line.split(b";", 1)[0].strip(), 16)
            except ValueError as exc:
                raise ProtocolError(f"Invalid chunk size line: {line!r}") from exc
            if size == 0:
                # Drain optional trailers up to the blank line
                while self._readline() not in (b"\r\n", b"\n", b""):
                    pass
                break
            remaining = size
            while remaining > 0:
                data = self._read_exact(min(remaining, chunk_size))
                remaining -= len(data)
                yield data
            self._read_exact(2)

    def _iter_content_length(self, chunk_size: int) -> Iterator[bytes]:
        assert self._content_length is not None
        remaining = self._content_length
        while remaining > 0:
            data = self._sock.recv(min(remaining, chunk_size))
            if not data:
                raise ProtocolError("Unexpected EOF while reading body")
            remaining -= len(data)
            yield data

    def _iter_until_close(self, chunk_size: int) -> Iterator[bytes]:
        while True:
            data = self._sock.recv(chunk_size)
            if not data:
                break
            yield data

    def read(self) -> bytes:
        """Read the entire body, decoding any Content-Encoding."""
        return decode_body(b"".join(self.iter_bytes()), self.content_encoding)

    def _readline(self) -> bytes:
        buf = bytearray()
        while True:
            ch = self._sock.recv(1)
            if not ch:
                break
            buf.extend(ch)
            if buf.endswith(b"\n"):
                break
        return bytes(buf)

    def _read_exact(self, n: int) -> bytes:
        remaining = n
        chunks: list[bytes] = []
        while remaining > 0:
            chunk = self._sock.recv(remaining)
            if not chunk:
                raise ProtocolError("Unexpected EOF while reading body")
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def close(self) -> None:
        """Close the response and release the connection."""
        if not self._closed:
            self._closed = True
            self._sock.close()

    def __enter__(self) -> StreamingResponse:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_bytes()

    def __repr__(self) -> str:
        return f"<StreamingResponse [{self.status_code}]>"


class AsyncStreamingResponse:
    """
    Async HTTP response whose body is still on the stream reader.

    Use aiter_bytes() to consume the body incrementally. The response must be
    closed after use to release the connection.
    """

    def __init__(
        self,
        status_code: int,
        reason: str,
        http_version: str,
        headers: list[tuple[str, str]],
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        content_length: int | None,
        chunked: bool,
        auto_decompress: bool = False,
        chunk_size: int = 8192,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self.http_version = http_version
        self.raw_headers: list[tuple[str, str]] = headers
        self._reader = reader
        self._writer = writer
        self._content_length = content_length
        self._chunked = chunked
        self._auto_decompress = auto_decompress
        self._chunk_size = chunk_size
        self._closed = False

    @property
    def headers(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for name, value in self.raw_headers:
            out[name.lower()] = value
        return out

    @property
    def content_encoding(self) -> str:
        return self.headers.get("content-encoding", "") if self._auto_decompress else ""

    async def aiter_bytes(self, chunk_size: int | None = None) -> AsyncIterator[bytes]:
        """Async iterate over the raw response body in chunks."""
        if self._closed:
            raise RuntimeError("Response has been closed")

        size = chunk_size or self._chunk_size
        try:
            if self._chunked:
                async for chunk in self._aiter_chunked(size):
                    yield chunk
            elif self._content_length is not None:
                async for chunk in self._aiter_content_length(size):
                    yield chunk
            else:
                async for chunk in self._aiter_until_close(size):
                    yield chunk
        except asyncio.IncompleteReadError as exc:
            raise ProtocolError("Unexpected EOF while reading body") from exc
        except OSError as exc:
            raise ConnectionError(f"Receive failed: {exc}") from exc

    async def _aiter_chunked(self, chunk_size: int) -> AsyncIterator[bytes]:
        while True:
            line = await self._reader.readline()
            if not line:
                raise ProtocolError("Unexpected EOF while reading chunk size")
            try:
                size = int(line.split(b";", 1)[0].strip(), 16)
            except ValueError as exc:
                raise ProtocolError(f"Invalid chunk size line: {line!r}") from exc
            if size == 0:
                while await self._reader.readline() not in (b"\r\n", b"\n", b""):
                    pass
                break
            remaining = size
            while remaining > 0:
                data = await self._reader.readexactly(min(remaining, chunk_size))
                remaining -= len(data)
                yield data
            await self._reader.readexactly(2)

    async def _aiter_content_length(self, chunk_size: int) -> AsyncIterator[bytes]:
        assert self._content_length is not None
        remaining = self._content_length
        while remaining > 0:
            data = await self._reader.read(min(remaining, chunk_size))
            if not data:
                raise ProtocolError("Unexpected EOF while reading body")
            remaining -= len(data)
            yield data

    async def _aiter_until_close(self, chunk_size: int) -> AsyncIterator[bytes]:
        while True:
            data = await self._reader.read(chunk_size)
            if not data:
                break
            yield data

    async def read(self) -> bytes:
        """Read the entire body, decoding any Content-Encoding."""
        chunks = []
        async for chunk in self.aiter_bytes():
            chunks.append(chunk)
        return decode_body(b"".join(chunks), self.content_encoding)

    async def close(self) -> None:
        """Close the response and release the connection."""
        if not self._closed:
            self._closed = True
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except OSError:
                # Peer already reset the connection
                pass

    async def __aenter__(self) -> AsyncStreamingResponse:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.aiter_bytes()

    def __repr__(self) -> str:
        return f"<AsyncStreamingResponse [{self.status_code}]>"
