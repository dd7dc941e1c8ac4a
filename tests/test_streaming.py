"""Tests for streaming response bodies."""
from __future__ import annotations

import asyncio
import gzip

import pytest
from unittest.mock import AsyncMock, MagicMock

from relayfetch.errors import ConnectionError, ProtocolError
from relayfetch.streaming import AsyncStreamingResponse, StreamingResponse, _body_framing


class FakeSocket:
    """Socket double that replays canned body bytes."""

    def __init__(self, data, max_chunk=None):
        self.data = data
        self.max_chunk = max_chunk
        self.closed = False

    def recv(self, n):
        if self.max_chunk:
            n = min(n, self.max_chunk)
        chunk, self.data = self.data[:n], self.data[n:]
        return chunk

    def close(self):
        self.closed = True


def _sync(data, content_length=None, chunked=False, headers=(), max_chunk=None, auto_decompress=False):
    return StreamingResponse(
        200, "OK", "1.1", list(headers), FakeSocket(data, max_chunk),
        content_length=content_length, chunked=chunked, auto_decompress=auto_decompress,
    )


def _async(data, content_length=None, chunked=False, headers=(), auto_decompress=False):
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    writer = MagicMock()
    writer.wait_closed = AsyncMock()
    return AsyncStreamingResponse(
        200, "OK", "1.1", list(headers), reader, writer,
        content_length=content_length, chunked=chunked, auto_decompress=auto_decompress,
    )


class TestBodyFraming:
    """Tests for _body_framing."""

    def test_content_length(self):
        """Content-Length gives a fixed size."""
        assert _body_framing([("Content-Length", "12")], "GET", 200) == (12, False)

    def test_chunked(self):
        """Chunked transfer encoding wins over Content-Length."""
        headers = [("Transfer-Encoding", "chunked"), ("Content-Length", "3")]
        assert _body_framing(headers, "GET", 200) == (None, True)

    def test_until_close(self):
        """No length means read until close."""
        assert _body_framing([], "GET", 200) == (None, False)

    @pytest.mark.parametrize("method, status", [("HEAD", 200), ("GET", 204), ("GET", 304), ("GET", 101)])
    def test_no_body(self, method, status):
        """HEAD, 1xx, 204 and 304 never carry a body."""
        assert _body_framing([("Content-Length", "10")], method, status) == (0, False)

    def test_invalid_content_length(self):
        """A non-numeric Content-Length raises ProtocolError."""
        with pytest.raises(ProtocolError, match="Invalid Content-Length"):
            _body_framing([("Content-Length", "ten")], "GET", 200)


class TestSyncStreaming:
    """Tests for synchronous streaming responses."""

    def test_content_length_body(self):
        """Reads exactly Content-Length bytes in order."""
        resp = _sync(b"hello worldEXTRA", content_length=11, max_chunk=3)
        assert resp.read() == b"hello world"

    def test_iter_bytes_preserves_order(self):
        """Chunks arrive in order and join to the full body."""
        resp = _sync(b"abcdefghij", content_length=10, max_chunk=4)
        chunks = list(resp.iter_bytes())
        assert chunks == [b"abcd", b"efgh", b"ij"]

    def test_truncated_body(self):
        """A body shorter than Content-Length raises ProtocolError."""
        resp = _sync(b"short", content_length=100)
        with pytest.raises(ProtocolError, match="Unexpected EOF"):
            resp.read()

    def test_chunked_body(self):
        """Chunked bodies are reassembled."""
        data = b"5\r\nhello\r\n6;ext=1\r\n world\r\n0\r\n\r\n"
        assert _sync(data, chunked=True).read() == b"hello world"

    def test_chunked_with_trailers(self):
        """Trailer headers after the last chunk are consumed."""
        data = b"3\r\nabc\r\n0\r\nX-Trailer: 1\r\n\r\n"
        assert _sync(data, chunked=True).read() == b"abc"

    def test_chunked_invalid_size(self):
        """A bad chunk size raises ProtocolError."""
        with pytest.raises(ProtocolError, match="Invalid chunk size"):
            _sync(b"zz\r\nabc\r\n", chunked=True).read()

    def test_chunked_eof(self):
        """A stream ending mid-way raises ProtocolError."""
        with pytest.raises(ProtocolError):
            _sync(b"5\r\nhel", chunked=True).read()

    def test_until_close(self):
        """Without framing the body runs to EOF."""
        assert _sync(b"everything", max_chunk=2).read() == b"everything"

    def test_zero_length(self):
        """A zero-length body reads as empty bytes."""
        assert _sync(b"", content_length=0).read() == b""

    def test_gzip_decoded(self):
        """Content-Encoding is decoded on read when enabled."""
        compressed = gzip.compress(b"zipped")
        resp = _sync(
            compressed, content_length=len(compressed),
            headers=[("Content-Encoding", "gzip")], auto_decompress=True,
        )
        assert resp.read() == b"zipped"

    def test_gzip_kept_by_default(self):
        """Without auto_decompress the body is left encoded."""
        compressed = gzip.compress(b"zipped")
        resp = StreamingResponse(
            200, "OK", "1.1", [("Content-Encoding", "gzip")], FakeSocket(compressed),
            content_length=len(compressed), chunked=False,
        )
        assert resp.read() == compressed

    def test_socket_error(self):
        """Socket errors while reading raise ConnectionError."""
        sock = MagicMock()
        sock.recv.side_effect = OSError("reset")
        resp = StreamingResponse(200, "OK", "1.1", [], sock, content_length=5, chunked=False)
        with pytest.raises(ConnectionError, match="Receive failed"):
            resp.read()

    def test_close(self):
        """Closing releases the socket and blocks further reads."""
        resp = _sync(b"data", content_length=4)
        with resp:
            pass
        assert resp._sock.closed is True
        with pytest.raises(RuntimeError):
            list(resp.iter_bytes())

    def test_headers_case_insensitive(self):
        """Headers are exposed with lower-case names."""
        resp = _sync(b"", content_length=0, headers=[("Content-Type", "text/plain")])
        assert resp.headers == {"content-type": "text/plain"}
        assert repr(resp) == "<StreamingResponse [200]>"


class TestAsyncStreaming:
    """Tests for asynchronous streaming responses."""

    @pytest.mark.asyncio
    async def test_content_length_body(self):
        """Reads exactly Content-Length bytes."""
        assert await _async(b"hello worldEXTRA", content_length=11).read() == b"hello world"

    @pytest.mark.asyncio
    async def test_truncated_body(self):
        """A short body raises ProtocolError."""
        with pytest.raises(ProtocolError):
            await _async(b"short", content_length=100).read()

    @pytest.mark.asyncio
    async def test_chunked_body(self):
        """Chunked bodies are reassembled."""
        data = b"5\r\nhello\r\n6\r\n world\r\n0\r\n\r\n"
        assert await _async(data, chunked=True).read() == b"hello world"

    @pytest.mark.asyncio
    async def test_chunked_truncated(self):
        """A chunk cut short raises ProtocolError."""
        with pytest.raises(ProtocolError):
            await _async(b"5\r\nhel", chunked=True).read()

    @pytest.mark.asyncio
    async def test_until_close(self):
        """Without framing the body runs to EOF."""
        assert await _async(b"everything").read() == b"everything"

    @pytest.mark.asyncio
    async def test_gzip_decoded(self):
        """Content-Encoding is decoded on read when enabled."""
        compressed = gzip.compress(b"zipped")
        resp = _async(
            compressed, content_length=len(compressed),
            headers=[("Content-Encoding", "gzip")], auto_decompress=True,
        )
        assert await resp.read() == b"zipped"

    @pytest.mark.asyncio
    async def test_close(self):
        """Closing closes the writer and blocks further reads."""
        resp = _async(b"data", content_length=4)
        async with resp:
            pass
        resp._writer.close.assert_called_once()
        with pytest.raises(RuntimeError):
            await resp.read()
