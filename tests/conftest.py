"""Pytest configuration and fixtures."""

import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from relayfetch.models import Response


class RouteHandler(BaseHTTPRequestHandler):
    """Serves the canned routes registered on the LocalServer."""

    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass  # Suppress logging

    def _handle(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        record = {
            "method": self.command,
            "path": self.path,
            "headers": self.headers,
            "body": body,
        }
        self.server.requests.append(record)

        route = self.server.routes.get(self.path.split("?", 1)[0])
        if route is None:
            status, reason, headers, payload, chunked = 404, "Not Found", [], b"missing", False
        elif callable(route):
            status, reason, headers, payload, chunked = route(record)
        else:
            status, reason, headers, payload, chunked = route

        self.send_response(status, reason)
        for name, value in headers:
            self.send_header(name, value)
        if chunked:
            self.send_header("Transfer-Encoding", "chunked")
        else:
            self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        if self.command == "HEAD":
            return
        if chunked:
            for i in range(0, len(payload), 3):
                piece = payload[i:i + 3]
                self.wfile.write(f"{len(piece):x}\r\n".encode() + piece + b"\r\n")
            self.wfile.write(b"0\r\n\r\n")
        else:
            self.wfile.write(payload)

    do_GET = _handle
    do_POST = _handle
    do_PUT = _handle
    do_DELETE = _handle
    do_HEAD = _handle


class LocalServer(ThreadingHTTPServer):
    """Threaded HTTP server with per-path canned responses."""

    def __init__(self):
        super().__init__(("127.0.0.1", 0), RouteHandler)
        self.routes = {}
        self.requests = []

    @property
    def base_url(self):
        return f"http://127.0.0.1:{self.server_address[1]}"

    def url(self, path):
        return self.base_url + path

    def route(self, path, status=200, body=b"", headers=(), reason=None, chunked=False):
        self.routes[path] = (status, reason, list(headers), body, chunked)

    def handler(self, path, func):
        self.routes[path] = func


@pytest.fixture
def http_server():
    """Start a local HTTP server for testing."""
    server = LocalServer()
    thread = threading.Thread(target=server.serve_forever)
    thread.daemon = True
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def closed_port():
    """A localhost port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def sample_response():
    """Create a sample buffered Response object."""
    return Response(
        status_code=200,
        reason="OK",
        http_version="1.1",
        headers=[
            ("Content-Type", "application/json"),
            ("Content-Length", "13"),
        ],
        body=b'{"key":"val"}',
    )
