r"""Contain the exceptions raised by the API connection.

Three failure kinds are distinguished:

- ``NetworkError``: the transport failed before a complete HTTP response
  was received (DNS, TCP, TLS, timeout, truncated transfer, redirect
  loop). The ``code`` attribute holds a libcurl-compatible error code.
- ``ClientError``: the remote service answered with a 4xx status.
- ``ServerError``: the remote service answered with a 5xx status.

For ``ClientError`` and ``ServerError`` the ``code`` attribute holds the
HTTP status code.
"""

from __future__ import annotations

__all__ = ["ApiError", "ClientError", "NetworkError", "ServerError", "extract_error_message"]

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx


def extract_error_message(payload: Any) -> Any:
    r"""Extract a human-readable message from a decoded error body.

    The remote service reports errors in a few shapes: a list of
    ``{"status": ..., "message": ...}`` objects, or an object with a
    ``title`` and/or an ``errors`` collection. Anything else is returned
    unchanged.

    Args:
        payload: The decoded error body.

    Returns:
        The extracted message, or the payload itself if no known shape
        matches.

    Example:
        ```pycon
        >>> from bcnet.exceptions import extract_error_message
        >>> extract_error_message([{"status": 404, "message": "Not found"}])
        'Not found'
        >>> extract_error_message({"title": "Invalid field", "status": 422})
        'Invalid field'
        >>> extract_error_message({"title": "Invalid", "errors": {"name": "name is required"}})
        'name is required'
        >>> extract_error_message("plain message")
        'plain message'

        ```
    """
    message = payload
    if isinstance(message, list) and message:
        first = message[0]
        if isinstance(first, Mapping) and "message" in first:
            message = first["message"]
    if isinstance(message, Mapping):
        fields = message
        if "title" in fields:
            message = fields["title"]
        errors = fields.get("errors")
        if isinstance(errors, Mapping) and errors:
            message = next(iter(errors.values()))
        elif isinstance(errors, list) and errors:
            message = errors[0]
    return message


class ApiError(Exception):
    r"""Base class for all the errors raised by the API connection.

    Args:
        message: The error message or the decoded error body. Known error
            body shapes are reduced to their message, see
            ``extract_error_message``.
        code: The HTTP status code or the transport error code.
        method: The HTTP method of the failed request, if known.
        url: The URL of the failed request, if known.
        body: The decoded response body, if any.
        response: The HTTP response, if any.
        cause: The underlying exception, if any.

    Example:
        ```pycon
        >>> from bcnet import ClientError
        >>> error = ClientError({"title": "Not Found"}, 404)
        >>> error.message
        'Not Found'
        >>> error.code
        404

        ```
    """

    def __init__(
        self,
        message: Any,
        code: int = 0,
        *,
        method: str | None = None,
        url: str | None = None,
        body: Any = None,
        response: httpx.Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = extract_error_message(message)
        self.code = code
        self.method = method
        self.url = url
        self.body = body
        self.response = response
        self.cause = cause
        super().__init__(self.message)

    def __str__(self) -> str:
        return str(self.message)

    @property
    def status_code(self) -> int | None:
        r"""The HTTP status code, or ``None`` if no response was
        received."""
        return self.response.status_code if self.response is not None else None


class NetworkError(ApiError):
    r"""Raised when the transport fails before a complete HTTP response
    is received."""


class ClientError(ApiError):
    r"""Raised when the remote service answers with a 4xx status."""


class ServerError(ApiError):
    r"""Raised when the remote service answers with a 5xx status."""
