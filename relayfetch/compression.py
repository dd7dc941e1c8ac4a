"""
Content-Encoding decoding for response bodies.

Supports gzip, deflate, and brotli (br) encodings.
"""

from __future__ import annotations

import gzip
import io
import zlib

import brotli

from .errors import ProtocolError

SUPPORTED_ENCODINGS = ("gzip", "deflate", "br")


def decode_body(body: bytes, content_encoding: str) -> bytes:
    """
    Decode response body based on Content-Encoding header.

    Args:
        body: Raw response body bytes
        content_encoding: Value of Content-Encoding header

    Returns:
        Decoded body bytes

    Raises:
        ProtocolError: the body is not valid for one of the listed encodings
    """
    if not content_encoding or not body:
        return body

    encoding = content_encoding.lower().strip()

    # Encodings are listed in the order they were applied
    encodings = [e.strip() for e in encoding.split(",")]

    result = body
    for enc in reversed(encodings):
        result = _decode_single(result, enc)

    return result


def _decode_single(body: bytes, encoding: str) -> bytes:
    """Decode body with a single encoding."""
    if encoding == "gzip":
        try:
            with gzip.GzipFile(fileobj=io.BytesIO(body)) as f:
                return f.read()
        except (OSError, EOFError, zlib.error) as exc:
            raise ProtocolError(f"Could not decode {encoding} body: {exc}") from exc

    if encoding == "deflate":
        try:
            # Raw deflate first (no header)
            return zlib.decompress(body, -zlib.MAX_WBITS)
        except zlib.error:
            try:
                return zlib.decompress(body)
            except zlib.error as exc:
                raise ProtocolError(f"Could not decode {encoding} body: {exc}") from exc

    if encoding == "br":
        try:
            return brotli.decompress(body)
        except brotli.error as exc:
            raise ProtocolError(f"Could not decode {encoding} body: {exc}") from exc

    # identity or unknown
    return body
