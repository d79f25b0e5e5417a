r"""Contain the retry policy used by the API connection.

Two retry paths exist:

- Rate-limited requests (408, 429) wait for the reset window announced by
  the server and are retried without an attempt cap unless
  ``max_rate_limit_retries`` is set.
- Transient failures (500, 502, and network timeouts, empty responses or
  receive errors) wait a fixed delay and are retried at most
  ``max_retries`` times.
"""

from __future__ import annotations

__all__ = ["RetryPolicy", "calculate_rate_limit_delay"]

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bcnet.config import (
    MAX_RETRY,
    NETWORK_RETRY_ERROR_CODES,
    RATE_LIMIT_RESET_HEADER,
    RATE_LIMIT_STATUS_CODES,
    RETRY_AFTER_HEADER,
    SERVER_RETRY_DELAY,
    SERVER_RETRY_STATUS_CODES,
)
from bcnet.exceptions import ApiError, ClientError, NetworkError, ServerError
from bcnet.utils import parse_reset_ms, parse_retry_after

if TYPE_CHECKING:
    import httpx

logger: logging.Logger = logging.getLogger(__name__)


def calculate_rate_limit_delay(response: httpx.Response | None, method: str) -> float:
    """Calculate how long to wait before retrying a rate-limited
    request.

    HEAD requests read the ``x-retry-after`` header (seconds), the other
    methods read ``X-Rate-Limit-Time-Reset-Ms`` (milliseconds). The
    standard ``Retry-After`` header is used when neither is present.

    Args:
        response: The rate-limited HTTP response (if available).
        method: The HTTP method of the request.

    Returns:
        The delay in seconds, ``0.0`` if the server gave no hint.
    """
    if response is None:
        return 0.0
    headers = response.headers
    if method.upper() == "HEAD":
        delay = parse_retry_after(headers.get(RETRY_AFTER_HEADER))
    else:
        delay = parse_reset_ms(headers.get(RATE_LIMIT_RESET_HEADER))
    if delay is None:
        delay = parse_retry_after(headers.get("Retry-After"))
    if delay is None:
        logger.debug(f"No rate-limit reset hint in the {method} response, retrying immediately")
        return 0.0
    return delay


@dataclass(frozen=True)
class RetryPolicy:
    r"""Implement the retry decisions of the API connection.

    Args:
        max_retries: Maximum number of retries for server errors and
            network faults. Must be >= 0.
        server_retry_delay: Seconds to wait before retrying a server
            error or a network fault. Must be >= 0.
        rate_limit_status_codes: Client error codes retried after the
            server's reset window.
        server_status_codes: Server error codes retried after
            ``server_retry_delay``.
        network_error_codes: Transport error codes retried after
            ``server_retry_delay``.
        max_rate_limit_retries: Maximum number of retries for
            rate-limited requests, or ``None`` for no cap.

    Example:
        ```pycon
        >>> from bcnet import RetryPolicy, ServerError
        >>> policy = RetryPolicy()
        >>> policy.compute_delay(ServerError("oops", 502), method="GET", attempts=0)
        60.0
        >>> policy.compute_delay(ServerError("oops", 502), method="GET", attempts=5)

        ```
    """

    max_retries: int = MAX_RETRY
    server_retry_delay: float = SERVER_RETRY_DELAY
    rate_limit_status_codes: tuple[int, ...] = RATE_LIMIT_STATUS_CODES
    server_status_codes: tuple[int, ...] = SERVER_RETRY_STATUS_CODES
    network_error_codes: tuple[int, ...] = NETWORK_RETRY_ERROR_CODES
    max_rate_limit_retries: int | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            msg = f"max_retries must be >= 0, got {self.max_retries}"
            raise ValueError(msg)
        if self.server_retry_delay < 0:
            msg = f"server_retry_delay must be >= 0, got {self.server_retry_delay}"
            raise ValueError(msg)
        if self.max_rate_limit_retries is not None and self.max_rate_limit_retries < 0:
            msg = f"max_rate_limit_retries must be >= 0 or None, got {self.max_rate_limit_retries}"
            raise ValueError(msg)

    def is_rate_limited(self, error: ApiError) -> bool:
        return isinstance(error, ClientError) and error.code in self.rate_limit_status_codes

    def compute_delay(
        self,
        error: ApiError,
        *,
        method: str,
        attempts: int = 0,
        rate_limit_attempts: int = 0,
    ) -> float | None:
        """Decide whether a failed request should be retried.

        Args:
            error: The classified error of the last exchange.
            method: The HTTP method of the request.
            attempts: Number of retries already made for server errors
                and network faults.
            rate_limit_attempts: Number of retries already made for
                rate-limited requests.

        Returns:
            The delay in seconds before the next attempt, or ``None`` if
            the error should be surfaced.
        """
        if self.is_rate_limited(error):
            if (
                self.max_rate_limit_retries is not None
                and rate_limit_attempts >= self.max_rate_limit_retries
            ):
                logger.debug(
                    f"{method} request to {error.url} still rate limited after "
                    f"{rate_limit_attempts} retries"
                )
                return None
            return calculate_rate_limit_delay(error.response, method)

        if isinstance(error, ServerError):
            retryable = error.code in self.server_status_codes
        elif isinstance(error, NetworkError):
            retryable = error.code in self.network_error_codes
        else:
            retryable = False

        if not retryable:
            return None
        if attempts >= self.max_retries:
            logger.debug(
                f"{method} request to {error.url} failed with code {error.code} "
                f"after {attempts} retries"
            )
            return None
        return self.server_retry_delay
