r"""bcnet - Resilient HTTP client for a BigCommerce-style store API.

This package translates method calls into HTTP requests against a store
API and decodes the responses. Built on top of the modern httpx library,
its connection layer classifies every exchange, retries transient
failures and follows redirects safely.

Key Features:
    - Basic or OAuth token authentication
    - JSON, XML and URL-encoded form content types
    - Automatic retry of rate-limited requests (408, 429) using the
      server's reset window
    - Bounded retry of server errors (500, 502) and network faults
    - Manual redirect following with loop protection
    - Throwing or non-throwing error handling (``fail_on_error``)
    - Table-driven catalog of store resources

Example:
    ```pycon
    >>> from bcnet import Client, ClientSettings
    >>> client = Client(ClientSettings.basic("https://store.example.com", "admin", "secret"))
    >>> product = client.fetch("product", 5)  # doctest: +SKIP

    ```
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_MAX_REDIRECTS",
    "DEFAULT_TIMEOUT",
    "MAX_RETRY",
    "RATE_LIMIT_STATUS_CODES",
    "RESOURCES",
    "SERVER_RETRY_DELAY",
    "SERVER_RETRY_STATUS_CODES",
    "ApiError",
    "Client",
    "ClientError",
    "ClientSettings",
    "Connection",
    "Filter",
    "NetworkError",
    "Resource",
    "ResourceKind",
    "RetryPolicy",
    "ServerError",
    "__version__",
]

from importlib.metadata import PackageNotFoundError, version

from bcnet.client import Client
from bcnet.config import (
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_TIMEOUT,
    MAX_RETRY,
    RATE_LIMIT_STATUS_CODES,
    SERVER_RETRY_DELAY,
    SERVER_RETRY_STATUS_CODES,
)
from bcnet.connection import Connection
from bcnet.exceptions import ApiError, ClientError, NetworkError, ServerError
from bcnet.query import Filter
from bcnet.resources import RESOURCES, Resource, ResourceKind
from bcnet.retry import RetryPolicy
from bcnet.settings import ClientSettings

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
