from relayfetch.client import Fetcher
from relayfetch.aio import AsyncFetcher
from relayfetch.models import Blob, Request, Response
from relayfetch.proxy import DEFAULT_PROXY_PATH, ProxyEnvelope, build_proxy_request
from relayfetch.errors import (
    FetchError,
    ConnectionError,
    TLSNegotiationError,
    ProtocolError,
    HTTPError,
    InvalidJSONError,
    InvalidURLError,
)

__version__ = "0.1.0"

__all__ = [
    "Fetcher",
    "AsyncFetcher",
    "Blob",
    "Request",
    "Response",
    "DEFAULT_PROXY_PATH",
    "ProxyEnvelope",
    "build_proxy_request",
    "FetchError",
    "ConnectionError",
    "TLSNegotiationError",
    "ProtocolError",
    "HTTPError",
    "InvalidJSONError",
    "InvalidURLError",
]
