r"""Contain utility functions for the API connection."""

from __future__ import annotations

__all__ = [
    "decode_body",
    "encode_body",
    "network_error_code",
    "parse_reset_ms",
    "parse_retry_after",
    "resolve_location",
    "validate_cipher",
    "validate_connection_params",
]

import json
import logging
import ssl
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from bcnet.config import (
    ERROR_COULDNT_CONNECT,
    ERROR_COULDNT_RESOLVE_PROXY,
    ERROR_GOT_NOTHING,
    ERROR_OPERATION_TIMEDOUT,
    ERROR_RECV_ERROR,
    ERROR_SEND_ERROR,
    ERROR_TOO_MANY_REDIRECTS,
    ERROR_UNKNOWN,
    ERROR_UNSUPPORTED_PROTOCOL,
    MEDIA_TYPE_WWW,
    MEDIA_TYPE_XML,
)
from bcnet.query import build_query

logger: logging.Logger = logging.getLogger(__name__)


def validate_connection_params(
    timeout: float | httpx.Timeout | None = None,
    max_redirects: int | None = None,
) -> None:
    """Validate connection parameters.

    Args:
        timeout: Maximum seconds to wait for the server response.
            Must be > 0 if provided as a numeric value.
        max_redirects: Maximum number of redirects to follow manually.
            Must be >= 0 if provided.

    Raises:
        ValueError: If timeout is non-positive or max_redirects is
            negative.

    Example:
        ```pycon
        >>> from bcnet.utils import validate_connection_params
        >>> validate_connection_params(timeout=10.0, max_redirects=20)
        >>> validate_connection_params(timeout=-1)  # doctest: +SKIP

        ```
    """
    if timeout is not None and isinstance(timeout, (int, float)) and timeout <= 0:
        msg = f"timeout must be > 0, got {timeout}"
        raise ValueError(msg)
    if max_redirects is not None and max_redirects < 0:
        msg = f"max_redirects must be >= 0, got {max_redirects}"
        raise ValueError(msg)


def parse_retry_after(retry_after_header: str | None) -> float | None:
    """Parse a Retry-After style header value.

    The header can be specified in two formats:
    1. A number of seconds to wait
    2. An HTTP-date in RFC 5322 format

    Args:
        retry_after_header: The value of the header, or None if the
            header is not present.

    Returns:
        The number of seconds to wait before retrying, or None if the
        header is absent or cannot be parsed.

    Example:
        ```pycon
        >>> from bcnet.utils import parse_retry_after
        >>> parse_retry_after("120")
        120.0
        >>> parse_retry_after("0")
        0.0
        >>> parse_retry_after(None)
        >>> parse_retry_after("invalid")

        ```
    """
    if retry_after_header is None:
        return None

    # Try parsing as a number of seconds
    try:
        return max(0.0, float(retry_after_header))
    except ValueError:
        pass

    # Try parsing as HTTP-date (RFC 5322 format)
    try:
        retry_date: datetime = parsedate_to_datetime(retry_after_header)
        now = datetime.now(timezone.utc)
        delta_seconds = (retry_date - now).total_seconds()
        # Ensure we don't return negative values
        return max(0.0, delta_seconds)
    except (ValueError, TypeError, OverflowError):
        logger.debug(f"Failed to parse Retry-After header: {retry_after_header!r}")
        return None


def parse_reset_ms(reset_header: str | None) -> float | None:
    """Parse a rate-limit reset header expressed in milliseconds.

    Args:
        reset_header: The value of the ``X-Rate-Limit-Time-Reset-Ms``
            header, or None if the header is not present.

    Returns:
        The number of seconds to wait before retrying, or None if the
        header is absent or cannot be parsed.

    Example:
        ```pycon
        >>> from bcnet.utils import parse_reset_ms
        >>> parse_reset_ms("1500")
        1.5
        >>> parse_reset_ms(None)
        >>> parse_reset_ms("soon")

        ```
    """
    if reset_header is None:
        return None
    try:
        return max(0.0, int(reset_header.strip()) / 1000)
    except ValueError:
        logger.debug(f"Failed to parse rate-limit reset header: {reset_header!r}")
        return None


def encode_body(body: Any, content_type: str) -> str | bytes:
    """Serialize a request body for the given content type.

    Strings and bytes are sent untouched. Other values are URL-encoded
    in form mode and JSON-encoded otherwise. In XML mode the body must
    already be serialized.

    Args:
        body: The request body.
        content_type: The active content type.

    Returns:
        The serialized body.

    Raises:
        TypeError: If the body is not a string or bytes in XML mode.

    Example:
        ```pycon
        >>> from bcnet.utils import encode_body
        >>> encode_body({"name": "Shoes"}, "application/json")
        '{"name": "Shoes"}'
        >>> encode_body(None, "application/json")
        'null'
        >>> encode_body({"name": "Red shoes"}, "application/x-www-form-urlencoded")
        'name=Red+shoes'
        >>> encode_body("<product/>", "application/xml")
        '<product/>'

        ```
    """
    if isinstance(body, (str, bytes)):
        return body
    if content_type == MEDIA_TYPE_XML:
        msg = f"body must be str or bytes when sending XML, got {type(body).__name__}"
        raise TypeError(msg)
    if content_type == MEDIA_TYPE_WWW:
        return build_query(body or {})
    return json.dumps(body)


def validate_cipher(cipher: str | None) -> None:
    """Validate an OpenSSL cipher list.

    Args:
        cipher: The cipher list, or None to use the system defaults.

    Raises:
        ValueError: If no cipher of the list can be selected.

    Example:
        ```pycon
        >>> from bcnet.utils import validate_cipher
        >>> validate_cipher("ECDHE+AESGCM")
        >>> validate_cipher(None)

        ```
    """
    if cipher is None:
        return
    try:
        ssl.create_default_context().set_ciphers(cipher)
    except ssl.SSLError as exc:
        msg = f"cipher must be a valid OpenSSL cipher list, got {cipher!r}"
        raise ValueError(msg) from exc


def decode_body(text: str, raw: bool = False) -> Any:
    """Decode a response body.

    Args:
        text: The response body.
        raw: If ``True``, the body is returned untouched.

    Returns:
        The raw body in raw mode, ``None`` for an empty body, the
        decoded JSON value, or the raw body if it is not valid JSON.

    Example:
        ```pycon
        >>> from bcnet.utils import decode_body
        >>> decode_body('{"id": 5}')
        {'id': 5}
        >>> decode_body("")
        >>> decode_body("<product/>", raw=True)
        '<product/>'

        ```
    """
    if raw:
        return text
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        logger.debug("Response body is not valid JSON, returning it as text")
        return text


def resolve_location(location: str, effective_url: str | httpx.URL) -> str:
    """Resolve a ``Location`` header against the URL that produced it.

    Args:
        location: The value of the ``Location`` header.
        effective_url: The URL actually reached by the previous request.

    Returns:
        The absolute URL to follow.

    Example:
        ```pycon
        >>> from bcnet.utils import resolve_location
        >>> resolve_location("/v2/bar", "https://api.example.com/v2/foo")
        'https://api.example.com/v2/bar'
        >>> resolve_location("https://other.example.com/x", "https://api.example.com/v2/foo")
        'https://other.example.com/x'

        ```
    """
    target = httpx.URL(location)
    if target.scheme and target.host:
        return location
    return str(httpx.URL(effective_url).join(location))


def network_error_code(exc: httpx.RequestError) -> int:
    """Map an httpx transport exception to a libcurl-compatible error
    code.

    Args:
        exc: The transport exception.

    Returns:
        The error code.

    Example:
        ```pycon
        >>> import httpx
        >>> from bcnet.utils import network_error_code
        >>> network_error_code(httpx.ReadTimeout("timed out"))
        28

        ```
    """
    if isinstance(exc, httpx.TimeoutException):
        return ERROR_OPERATION_TIMEDOUT
    if isinstance(exc, httpx.ProxyError):
        return ERROR_COULDNT_RESOLVE_PROXY
    if isinstance(exc, httpx.ConnectError):
        return ERROR_COULDNT_CONNECT
    if isinstance(exc, httpx.RemoteProtocolError):
        return ERROR_GOT_NOTHING
    if isinstance(exc, httpx.ReadError):
        return ERROR_RECV_ERROR
    if isinstance(exc, httpx.WriteError):
        return ERROR_SEND_ERROR
    if isinstance(exc, httpx.UnsupportedProtocol):
        return ERROR_UNSUPPORTED_PROTOCOL
    if isinstance(exc, httpx.TooManyRedirects):
        return ERROR_TOO_MANY_REDIRECTS
    return ERROR_UNKNOWN
