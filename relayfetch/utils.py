from __future__ import annotations

from collections.abc import Callable
from urllib.parse import urljoin, urlparse

from .errors import InvalidURLError

Callback = Callable[[BaseException | None, object], None]


def _port(parsed, url: str) -> int | None:
    try:
        return parsed.port
    except ValueError as exc:
        raise InvalidURLError(f"Invalid port in {url!r}") from exc


def resolve_url(url: str, base_url: str | None = None) -> str:
    """Return ``url`` in absolute http(s) form, resolved against ``base_url``."""
    resolved = urljoin(base_url, url) if base_url else url
    parsed = urlparse(resolved)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        if not parsed.scheme and not base_url:
            raise InvalidURLError(
                f"Cannot resolve relative URL {url!r} without a base_url"
            )
        raise InvalidURLError("Only http and https schemes are supported")
    _port(parsed, resolved)
    return resolved


def parse_url(url: str):
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise InvalidURLError("Only http and https schemes are supported")
    host = parsed.hostname or ""
    port = _port(parsed, url) or (443 if parsed.scheme == "https" else 80)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return parsed, host, port, path


def notify(
    callback: Callback | None,
    error: BaseException | None,
    result: object = None,
) -> None:
    """Deliver an outcome to an optional ``callback(error, result)``."""
    if callback is not None:
        callback(error, result)
