from __future__ import annotations

import logging
import socket
import ssl
from collections.abc import Iterable

from .errors import ConnectionError, ProtocolError, TLSNegotiationError
from .headers import build_request_headers
from .models import Request
from .streaming import StreamingResponse, _body_framing
from .utils import parse_url, resolve_url

logger = logging.getLogger(__name__)


def build_request_bytes(
    method: str,
    path: str,
    headers: Iterable[tuple[str, str]],
    body: bytes | None,
) -> bytes:
    lines = [f"{method} {path} HTTP/1.1\r\n".encode("ascii")]
    for name, value in headers:
        lines.append(f"{name}: {value}\r\n".encode("latin-1"))
    lines.append(b"\r\n")
    if body:
        lines.append(body)
    return b"".join(lines)


def parse_status_line(status_line: bytes) -> tuple[str, int, str]:
    """Split ``HTTP/1.1 200 OK`` into version, status code and reason."""
    if not status_line:
        raise ProtocolError("Empty response")
    try:
        parts = status_line.decode("latin-1").strip().split(" ", 2)
        version = parts[0].split("/", 1)[1]
        status_code = int(parts[1])
        reason = parts[2] if len(parts) > 2 else ""
    except (IndexError, ValueError) as exc:
        raise ProtocolError(f"Malformed status line: {status_line!r}") from exc
    return version, status_code, reason


def parse_header_line(line: bytes) -> tuple[str, str]:
    try:
        name, value = line.split(b":", 1)
    except ValueError as exc:
        raise ProtocolError(f"Malformed header line: {line!r}") from exc
    return name.decode("latin-1").strip(), value.decode("latin-1").strip()


class Connection:
    """
    Single TCP/TLS connection carrying exactly one HTTP/1.1 request.
    """

    def __init__(
        self,
        host: str,
        port: int,
        scheme: str,
        timeout: float | None = None,
        verify: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.scheme = scheme
        self.timeout = timeout
        self.verify = verify
        self.sock: socket.socket | ssl.SSLSocket | None = None
        self.closed = True

    def connect(self) -> None:
        raw = self._open_tcp()

        if self.scheme == "https":
            context = ssl.create_default_context()
            if not self.verify:
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
            try:
                self.sock = context.wrap_socket(raw, server_hostname=self.host)
            except ssl.SSLError as exc:
                raw.close()
                raise TLSNegotiationError(f"TLS handshake failed: {exc}") from exc
            except OSError as exc:
                raw.close()
                raise ConnectionError(f"TLS connection failed: {exc}") from exc
        else:
            self.sock = raw

        self.sock.settimeout(self.timeout)
        self.closed = False

    def send(
        self,
        method: str,
        path: str,
        headers: Iterable[tuple[str, str]],
        body: bytes | None = None,
        auto_decompress: bool = False,
    ) -> StreamingResponse:
        """Send one request and return the response with its body unread."""
        if self.closed or self.sock is None:
            self.connect()
        assert self.sock is not None

        request_bytes = build_request_bytes(method, path, headers, body)
        try:
            self.sock.sendall(request_bytes)
            version, status_code, reason = parse_status_line(self._readline())
            raw_headers: list[tuple[str, str]] = []
            while True:
                line = self._readline()
                if line in (b"\r\n", b"\n", b""):
                    break
                raw_headers.append(parse_header_line(line))
            content_length, chunked = _body_framing(raw_headers, method, status_code)
        except OSError as exc:
            self.close()
            raise ConnectionError(f"Request failed: {exc}") from exc
        except ProtocolError:
            self.close()
            raise

        return StreamingResponse(
            status_code,
            reason,
            version,
            raw_headers,
            self.sock,
            content_length=content_length,
            chunked=chunked,
            auto_decompress=auto_decompress,
        )

    def _readline(self) -> bytes:
        assert self.sock is not None
        buf = bytearray()
        while True:
            ch = self.sock.recv(1)
            if not ch:
                break
            buf.extend(ch)
            if buf.endswith(b"\n"):
                break
        return bytes(buf)

    def close(self) -> None:
        if self.sock:
            try:
                self.sock.close()
            finally:
                self.sock = None
        self.closed = True

    def _open_tcp(self) -> socket.socket:
        try:
            return socket.create_connection(
                (self.host, self.port), timeout=self.timeout
            )
        except OSError as exc:
            raise ConnectionError(f"TCP connection failed: {exc}") from exc


def send_request(
    request: Request,
    base_url: str | None = None,
    timeout: float | None = None,
    verify: bool = True,
    auto_decompress: bool = False,
) -> StreamingResponse:
    """
    Open one connection for ``request`` and return the unread response.

    Args:
        request: The request to send
        base_url: Base that relative request URLs resolve against
        timeout: Socket timeout in seconds, None to wait indefinitely
        verify: Whether to verify TLS certificates
        auto_decompress: Decode gzip/deflate/br bodies when read

    Raises:
        InvalidURLError: the URL is not an absolute http(s) URL after resolution
        ConnectionError: the connection could not be established or broke
        ProtocolError: the server sent a malformed response head
    """
    url = resolve_url(request.url, base_url)
    parsed, host, port, path = parse_url(url)
    headers = build_request_headers(host, port, parsed.scheme, request.headers, request.body)

    logger.debug("%s %s", request.method, url)
    conn = Connection(host, port, parsed.scheme, timeout=timeout, verify=verify)
    response = conn.send(
        request.method, path, headers, request.body, auto_decompress=auto_decompress
    )
    logger.debug("%s %s -> %d %s", request.method, url, response.status_code, response.reason)
    return response
