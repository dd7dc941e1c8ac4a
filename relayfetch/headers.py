from __future__ import annotations


def _sanitize_header(name: str, value: str) -> tuple[str, str]:
    """
    Sanitize header name and value to prevent HTTP header injection (CRLF injection).
    Strips CR, LF, and null bytes from both name and value.
    """
    clean_name = name.replace("\r", "").replace("\n", "").replace("\x00", "")
    clean_value = value.replace("\r", "").replace("\n", "").replace("\x00", "")
    return clean_name, clean_value


def merge_headers(
    framing_headers: dict[str, str],
    user_headers: dict[str, str] | None,
) -> list[tuple[str, str]]:
    """
    Merge caller headers over the framing headers HTTP/1.1 needs.

    Names compare case-insensitively; a caller header replaces a framing header
    of the same name but keeps the caller's spelling. Framing headers come first,
    then caller headers in insertion order.
    """
    merged: dict[str, tuple[str, str]] = {}
    for name, value in framing_headers.items():
        name, value = _sanitize_header(name, value)
        merged[name.lower()] = (name, value)
    if user_headers:
        for name, value in user_headers.items():
            name, value = _sanitize_header(name, str(value))
            merged[name.lower()] = (name, value)
    return list(merged.values())


def build_request_headers(
    host: str,
    port: int,
    scheme: str,
    user_headers: dict[str, str] | None,
    body: bytes | None,
) -> list[tuple[str, str]]:
    default_port = 443 if scheme == "https" else 80
    if ":" in host:
        # IPv6 literal
        host = f"[{host}]"
    framing: dict[str, str] = {
        "Host": host if port == default_port else f"{host}:{port}",
        "Connection": "close",
    }
    if body is not None:
        framing["Content-Length"] = str(len(body))
    return merge_headers(framing, user_headers)
