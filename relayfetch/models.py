from __future__ import annotations

from collections.abc import Iterable

DEFAULT_MIME_TYPE = "application/octet-stream"


class Request:
    """
    Description of one outgoing HTTP request.

    The body is raw bytes or ``None``; encoding structured data is the
    caller's business.
    """

    def __init__(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
    ) -> None:
        if body is not None and not isinstance(body, (bytes, bytearray, memoryview)):
            raise TypeError("Request body must be bytes or None")
        self.url = url
        self.method = method.upper()
        self.headers: dict[str, str] = dict(headers or {})
        self.body = bytes(body) if body is not None else None

    def __repr__(self) -> str:
        return f"<Request [{self.method}] {self.url}>"


class Response:
    """
    HTTP response that preserves header order.

    Pipeline stages never modify a response; they derive a new one with
    ``with_body()``. The body is bytes once read, then whatever the
    transformer produced (str, parsed JSON or :class:`Blob`).
    """

    def __init__(
        self,
        status_code: int,
        reason: str,
        http_version: str,
        headers: Iterable[tuple[str, str]],
        body: object,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self.http_version = http_version
        self.raw_headers: list[tuple[str, str]] = list(headers)
        self._body = body

    @property
    def headers(self) -> dict[str, str]:
        # Last-write wins while keeping access case-insensitive for callers.
        out: dict[str, str] = {}
        for name, value in self.raw_headers:
            out[name.lower()] = value
        return out

    @property
    def body(self) -> object:
        return self._body

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    def with_body(self, body: object) -> Response:
        return Response(
            self.status_code,
            self.reason,
            self.http_version,
            self.raw_headers,
            body,
        )

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}] {type(self._body).__name__}>"


class Blob:
    """Binary payload tagged with its MIME type."""

    def __init__(self, data: bytes, type: str = DEFAULT_MIME_TYPE) -> None:
        self.data = bytes(data)
        self.type = type or DEFAULT_MIME_TYPE

    @property
    def size(self) -> int:
        return len(self.data)

    def text(self, encoding: str = "utf-8") -> str:
        return self.data.decode(encoding, errors="replace")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Blob):
            return NotImplemented
        return self.data == other.data and self.type == other.type

    def __hash__(self) -> int:
        return hash((self.data, self.type))

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"<Blob {self.type} {len(self.data)} bytes>"
