from __future__ import annotations


class FetchError(Exception):
    """Base error for relayfetch.

    Carries the HTTP status fields of the response that caused it, when there
    was one. The underlying exception, if any, is chained as ``__cause__``.
    """

    kind = "fetch-error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.reason = reason

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__

    def add_context(self, prefix: str) -> None:
        """Prepend call context to the message, keeping every other field."""
        self.message = f"{prefix} | {self.message}"
        self.args = (self.message,)

    def __str__(self) -> str:
        return self.message


class ConnectionError(FetchError):
    """Raised when no HTTP response could be obtained (status 0, TCP failure)."""

    kind = "connection-error"


class TLSNegotiationError(ConnectionError):
    """Raised when the TLS handshake fails."""


class ProtocolError(FetchError):
    """Raised when the server sends a malformed or truncated HTTP response."""

    kind = "protocol-error"


class HTTPError(FetchError):
    """Raised when the response status is outside 200-299."""

    kind = "http-status-error"


class InvalidJSONError(FetchError):
    """Raised when a response body is not a valid JSON document."""

    kind = "invalid-structured-data"


class InvalidURLError(FetchError, ValueError):
    """Raised for URLs that do not resolve to an absolute http(s) URL."""

    kind = "invalid-url"
