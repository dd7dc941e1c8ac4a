"""
JSON envelopes for requests relayed through a proxy endpoint.

The relay receives ``POST <proxy_path>`` with a JSON body describing the real
request and performs it on the caller's behalf.
"""

from __future__ import annotations

import base64
import json

from .models import Request
from .utils import resolve_url

DEFAULT_PROXY_PATH = "/proxy"


class ProxyEnvelope:
    """Outbound request as sent to the relay."""

    def __init__(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        allowed_mimes: list[str] | None = None,
        body: bytes | None = None,
    ) -> None:
        self.url = url
        self.method = method.upper()
        self.headers: dict[str, str] = dict(headers or {})
        self.allowed_mimes: list[str] = list(allowed_mimes or [])
        self.body = body

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "method": self.method,
            "headers": self.headers,
            "allowedMimes": self.allowed_mimes,
            "body": base64.b64encode(self.body).decode("ascii") if self.body is not None else None,
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_dict(cls, data: dict) -> ProxyEnvelope:
        body = data.get("body")
        return cls(
            url=data["url"],
            method=data.get("method") or "GET",
            headers=data.get("headers") or {},
            allowed_mimes=data.get("allowedMimes") or [],
            body=base64.b64decode(body) if body is not None else None,
        )

    @classmethod
    def from_json(cls, raw: bytes | str) -> ProxyEnvelope:
        """Parse an envelope on the relay side."""
        return cls.from_dict(json.loads(raw))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProxyEnvelope):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"<ProxyEnvelope [{self.method}] {self.url}>"


def build_proxy_request(
    url: str,
    proxy_path: str = DEFAULT_PROXY_PATH,
    base_url: str | None = None,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    body: bytes | None = None,
    allowed_mimes: list[str] | None = None,
) -> Request:
    """
    Wrap a request to ``url`` in an envelope POSTed to ``proxy_path``.

    Both ``url`` and ``proxy_path`` are resolved against ``base_url``.
    """
    envelope = ProxyEnvelope(
        url=resolve_url(url, base_url),
        method=method,
        headers=headers,
        allowed_mimes=allowed_mimes,
        body=body,
    )
    return Request(
        resolve_url(proxy_path, base_url),
        method="POST",
        headers={"content-type": "application/json"},
        body=envelope.to_json(),
    )
