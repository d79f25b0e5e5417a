r"""Contain the HTTP connection used to talk to the store API.

A ``Connection`` owns one ``httpx.Client`` for its whole lifetime and
issues synchronous GET, POST, PUT, HEAD and DELETE requests through it.
Each exchange is classified as a success, a client error (4xx), a server
error (5xx) or a network fault, and transient failures are retried
according to a ``RetryPolicy`` before being surfaced.

A ``Connection`` keeps the state of the last exchange (status, headers,
body, last error) and must not be shared between threads without
external synchronization.
"""

from __future__ import annotations

__all__ = ["Connection"]

import logging
import ssl
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx

from bcnet.config import (
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_TIMEOUT,
    ERROR_TOO_MANY_REDIRECTS,
    MEDIA_TYPE_JSON,
    MEDIA_TYPE_WWW,
    MEDIA_TYPE_XML,
    REDIRECT_STATUS_CODES,
)
from bcnet.exceptions import ApiError, ClientError, NetworkError, ServerError
from bcnet.query import build_query
from bcnet.retry import RetryPolicy
from bcnet.utils import (
    decode_body,
    encode_body,
    network_error_code,
    resolve_location,
    validate_cipher,
    validate_connection_params,
)

if TYPE_CHECKING:
    from types import TracebackType

    from bcnet.query import QueryParams

logger: logging.Logger = logging.getLogger(__name__)


class Connection:
    r"""Implement an HTTP connection with automatic retry logic.

    Args:
        timeout: Maximum seconds to wait for the connection and for the
            whole request. Must be > 0.
        verify: If ``False``, the TLS certificate of the server is not
            verified.
        proxy: An optional proxy URL, e.g. ``"http://proxy.local:3128"``.
        cipher: An optional OpenSSL cipher list used for TLS requests.
        follow_location: If ``True``, redirects are followed by the
            connection itself instead of the transport. Only 301 and 302
            are followed, always with a GET request.
        max_redirects: Maximum number of exchanges in a redirect chain
            when ``follow_location`` is ``True``. Must be >= 0.
        auto_retry: If ``False``, failed requests are never retried.
        fail_on_error: If ``True``, 4xx and 5xx responses raise a
            ``ClientError`` or a ``ServerError``. Otherwise the decoded
            error body is stored in ``last_error`` and ``False`` is
            returned.
        retry_policy: The retry policy. A default ``RetryPolicy`` is
            used if ``None``.
        transport: An optional httpx transport, mainly for testing.

    Raises:
        ValueError: If timeout is non-positive, max_redirects is
            negative or the cipher list is not valid.

    Example:
        ```pycon
        >>> from bcnet import Connection
        >>> with Connection(fail_on_error=True) as connection:
        ...     connection.authenticate("admin", "secret")
        ...     product = connection.get("https://store.example.com/api/v2/products/5")  # doctest: +SKIP
        ...

        ```
    """

    def __init__(
        self,
        *,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT,
        verify: bool = True,
        proxy: str | None = None,
        cipher: str | None = None,
        follow_location: bool = False,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        auto_retry: bool = True,
        fail_on_error: bool = False,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        validate_connection_params(timeout=timeout, max_redirects=max_redirects)
        validate_cipher(cipher)
        self._timeout = timeout
        self._verify = verify
        self._proxy = proxy
        self._cipher = cipher
        self._follow_location = follow_location
        self._max_redirects = max_redirects
        self._auto_retry = auto_retry
        self._fail_on_error = fail_on_error
        self._retry_policy = retry_policy or RetryPolicy()
        self._transport = transport

        self._client: httpx.Client | None = None
        self._auth: tuple[str, str] | None = None
        self._headers: dict[str, str] = {}
        self._content_type = MEDIA_TYPE_JSON
        self._raw_response = False

        self._retry_attempts = 0
        self._rate_limit_attempts = 0
        self._redirects_followed = 0

        self._status: int | None = None
        self._status_line: str | None = None
        self._response_headers = httpx.Headers()
        self._body = ""
        self._effective_url: str | None = None
        self._last_error: Any = None

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(content_type={self._content_type!r}, "
            f"fail_on_error={self._fail_on_error}, auto_retry={self._auto_retry}, "
            f"follow_location={self._follow_location})"
        )

    def __enter__(self) -> Connection:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        r"""Release the underlying HTTP transport."""
        if self._client is not None:
            self._client.close()
            self._client = None

    ############################
    #     Configuration        #
    ############################

    def use_xml(self, option: bool = True) -> None:
        r"""Send and receive XML; the response body is returned as a raw
        string."""
        self._content_type = MEDIA_TYPE_XML if option else MEDIA_TYPE_JSON
        self._raw_response = option

    def use_urlencoded(self, option: bool = True) -> None:
        r"""Send request bodies as URL-encoded form data."""
        if option:
            self._content_type = MEDIA_TYPE_WWW
        elif self._content_type == MEDIA_TYPE_WWW:
            self._content_type = MEDIA_TYPE_JSON

    def fail_on_error(self, option: bool = True) -> None:
        r"""Raise an exception when the request encounters an HTTP error
        (400-599).

        Network faults always raise a ``NetworkError``.
        """
        self._fail_on_error = option

    def set_auto_retry(self, retry: bool = True) -> None:
        self._auto_retry = bool(retry)

    def authenticate(self, username: str, api_key: str) -> None:
        r"""Use HTTP basic authentication.

        Any OAuth credentials previously set are removed.
        """
        self.remove_header("X-Auth-Client")
        self.remove_header("X-Auth-Token")
        self._auth = (username, api_key)
        self._reset_client()

    def authenticate_oauth(self, client_id: str, auth_token: str) -> None:
        r"""Use OAuth token headers.

        Any basic authentication credentials previously set are removed.
        """
        self.add_header("X-Auth-Client", client_id)
        self.add_header("X-Auth-Token", auth_token)
        self._auth = None
        self._reset_client()

    def set_timeout(self, timeout: float | httpx.Timeout) -> None:
        r"""Set the connect and overall timeout, in seconds."""
        validate_connection_params(timeout=timeout)
        self._timeout = timeout
        self._reset_client()

    def use_proxy(self, host: str, port: int | None = None) -> None:
        r"""Tunnel outgoing requests through a proxy server."""
        proxy = host if "://" in host else f"http://{host}"
        if port:
            proxy = f"{proxy}:{port}"
        self._proxy = proxy
        self._reset_client()

    def verify_peer(self, option: bool) -> None:
        r"""Switch TLS certificate verification on or off."""
        self._verify = option
        self._reset_client()

    def set_cipher(self, cipher: str | None) -> None:
        r"""Set the OpenSSL cipher list used during TLS requests.

        Raises:
            ValueError: If the cipher list is not valid.
        """
        validate_cipher(cipher)
        self._cipher = cipher
        self._reset_client()

    def add_header(self, header: str, value: str) -> None:
        self._headers[header] = value

    def remove_header(self, header: str) -> None:
        self._headers.pop(header, None)

    ############################
    #     Introspection        #
    ############################

    @property
    def auto_retry(self) -> bool:
        return self._auto_retry

    @property
    def content_type(self) -> str:
        r"""The MIME type used for the request and response bodies."""
        return self._content_type

    @property
    def request_headers(self) -> dict[str, str]:
        return dict(self._headers)

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def retry_attempts(self) -> int:
        r"""Number of retries made for server errors and network faults
        during the current request."""
        return self._retry_attempts

    @property
    def redirects_followed(self) -> int:
        return self._redirects_followed

    @property
    def status(self) -> int | None:
        r"""The status code of the last response."""
        return self._status

    @property
    def status_message(self) -> str | None:
        r"""The status line of the last response, e.g.
        ``"HTTP/1.1 404 Not Found"``."""
        return self._status_line

    @property
    def body(self) -> str:
        r"""The undecoded body of the last response."""
        return self._body

    @property
    def headers(self) -> httpx.Headers:
        r"""The headers of the last response (case-insensitive)."""
        return self._response_headers

    @property
    def effective_url(self) -> str | None:
        r"""The URL reached by the last request, after any redirect
        followed by the transport."""
        return self._effective_url

    @property
    def last_error(self) -> Any:
        r"""The decoded body of the last absorbed HTTP error, or ``None``
        if the last request did not fail."""
        return self._last_error

    def get_header(self, header: str) -> str | None:
        r"""Return a header of the last response, or ``None`` if it is
        missing."""
        return self._response_headers.get(header)

    ############################
    #     Requests             #
    ############################

    def get(self, url: str, query: QueryParams | None = None) -> Any:
        r"""Make an HTTP GET request.

        Args:
            url: The URL to request.
            query: Optional query parameters appended to the URL.

        Returns:
            The decoded response body, the raw body in XML mode, or
            ``False`` if an HTTP error was absorbed.

        Raises:
            NetworkError: If the transport fails.
            ClientError: On a 4xx response when ``fail_on_error`` is set.
            ServerError: On a 5xx response when ``fail_on_error`` is set.
        """
        return self.request("GET", url, query=query)

    def post(self, url: str, body: Any) -> Any:
        r"""Make an HTTP POST request, see ``get``."""
        return self.request("POST", url, body=body)

    def put(self, url: str, body: Any) -> Any:
        r"""Make an HTTP PUT request, see ``get``."""
        return self.request("PUT", url, body=body)

    def head(self, url: str) -> Any:
        r"""Make an HTTP HEAD request, see ``get``."""
        return self.request("HEAD", url)

    def delete(self, url: str) -> Any:
        r"""Make an HTTP DELETE request, see ``get``."""
        return self.request("DELETE", url)

    def request(
        self,
        method: str,
        url: str,
        *,
        query: QueryParams | None = None,
        body: Any = None,
    ) -> Any:
        r"""Make an HTTP request, retrying transient failures and
        following redirects.

        Args:
            method: The HTTP method.
            url: The URL to request.
            query: Optional query parameters appended to the URL.
            body: Optional request body, serialized according to the
                active content type.

        Returns:
            The decoded response body, the raw body in XML mode, or
            ``False`` if an HTTP error was absorbed.

        Raises:
            NetworkError: If the transport fails or too many redirects
                are followed.
            ClientError: On a 4xx response when ``fail_on_error`` is set.
            ServerError: On a 5xx response when ``fail_on_error`` is set.
        """
        method = method.upper()
        self._retry_attempts = 0
        self._rate_limit_attempts = 0
        self._redirects_followed = 0

        while True:
            try:
                response = self._send(method, url, query=query, body=body)
                result = self._handle_response(response, method)
            except ApiError as exc:
                if not (isinstance(exc, NetworkError) or self._fail_on_error):
                    return self._absorb(exc)
                delay = self._compute_retry_delay(exc, method)
                if delay is None:
                    raise
                logger.warning(
                    f"{method} request to {exc.url} failed with code {exc.code}, "
                    f"retrying in {delay:.2f}s"
                )
                time.sleep(delay)
                continue

            self._retry_attempts = 0
            self._rate_limit_attempts = 0
            if self._follow_location:
                location = self._follow_redirect(response, method)
                if location is not None:
                    # Redirects are always followed with a GET request.
                    method, url, query, body = "GET", location, None, None
                    continue
            return result

    ############################
    #     Internals            #
    ############################

    def _build_client(self) -> httpx.Client:
        verify: bool | ssl.SSLContext = self._verify
        if self._cipher:
            context = ssl.create_default_context()
            if not self._verify:
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
            context.set_ciphers(self._cipher)
            verify = context
        return httpx.Client(
            auth=self._auth,
            timeout=self._timeout,
            verify=verify,
            proxy=self._proxy,
            follow_redirects=not self._follow_location,
            transport=self._transport,
        )

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    def _reset_client(self) -> None:
        self.close()

    def _initialize_request(self) -> None:
        self._status = None
        self._status_line = None
        self._response_headers = httpx.Headers()
        self._body = ""
        self._effective_url = None
        self._last_error = None
        self.add_header("Accept", self._content_type)

    def _send(
        self,
        method: str,
        url: str,
        *,
        query: QueryParams | None,
        body: Any,
    ) -> httpx.Response:
        self._initialize_request()

        request_url = url
        if query:
            encoded = build_query(query)
            if encoded:
                request_url = f"{url}?{encoded}"

        headers = dict(self._headers)
        content: str | bytes | None = None
        if method in ("POST", "PUT"):
            headers["Content-Type"] = self._content_type
            content = encode_body(body, self._content_type)

        logger.debug(f"Sending {method} request to {request_url}")
        try:
            response = self._get_client().request(
                method, request_url, headers=headers, content=content
            )
        except httpx.RequestError as exc:
            code = network_error_code(exc)
            logger.debug(
                f"{method} request to {request_url} encountered {type(exc).__name__} "
                f"(code {code}): {exc}"
            )
            raise NetworkError(
                str(exc) or type(exc).__name__,
                code,
                method=method,
                url=request_url,
                cause=exc,
            ) from exc

        self._status = response.status_code
        self._status_line = (
            f"{response.http_version} {response.status_code} {response.reason_phrase}"
        )
        self._response_headers = response.headers
        self._body = response.text
        self._effective_url = str(response.url)
        return response

    def _handle_response(self, response: httpx.Response, method: str) -> Any:
        body = decode_body(self._body, raw=self._raw_response)
        status = response.status_code
        url = self._effective_url

        if 400 <= status <= 499:
            message = body["error"] if isinstance(body, Mapping) and "error" in body else body
            raise ClientError(
                message, status, method=method, url=url, body=body, response=response
            )
        if 500 <= status <= 599:
            raise ServerError(body, status, method=method, url=url, body=body, response=response)
        return body

    def _compute_retry_delay(self, error: ApiError, method: str) -> float | None:
        if not self._auto_retry:
            return None
        delay = self._retry_policy.compute_delay(
            error,
            method=method,
            attempts=self._retry_attempts,
            rate_limit_attempts=self._rate_limit_attempts,
        )
        if delay is not None:
            if self._retry_policy.is_rate_limited(error):
                self._rate_limit_attempts += 1
            else:
                self._retry_attempts += 1
        return delay

    def _absorb(self, error: ApiError) -> bool:
        logger.debug(f"{error.method} request to {error.url} failed with status {error.code}")
        self._last_error = error.body
        return False

    def _follow_redirect(self, response: httpx.Response, method: str) -> str | None:
        self._redirects_followed += 1

        if response.status_code in REDIRECT_STATUS_CODES:
            if self._redirects_followed >= self._max_redirects:
                msg = "Too many redirects when trying to follow location."
                raise NetworkError(
                    msg,
                    ERROR_TOO_MANY_REDIRECTS,
                    method=method,
                    url=self._effective_url,
                    response=response,
                )
            location = response.headers.get("Location")
            if location:
                target = resolve_location(location, response.url)
                logger.debug(
                    f"Following {response.status_code} redirect "
                    f"{self._redirects_followed}/{self._max_redirects} to {target}"
                )
                return target
            logger.debug(f"{response.status_code} response without a Location header")

        self._redirects_followed = 0
        return None
