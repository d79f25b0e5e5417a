r"""Contain the default configurations for the API connection and the
remote service."""

from __future__ import annotations

__all__ = [
    "API_LIMIT_REMAINING_HEADER",
    "BASIC_PATH_PREFIX",
    "DEFAULT_API_URL",
    "DEFAULT_LOGIN_URL",
    "DEFAULT_MAX_REDIRECTS",
    "DEFAULT_TIMEOUT",
    "ERROR_COULDNT_CONNECT",
    "ERROR_COULDNT_RESOLVE_PROXY",
    "ERROR_GOT_NOTHING",
    "ERROR_OPERATION_TIMEDOUT",
    "ERROR_RECV_ERROR",
    "ERROR_SEND_ERROR",
    "ERROR_TOO_MANY_REDIRECTS",
    "ERROR_UNKNOWN",
    "ERROR_UNSUPPORTED_PROTOCOL",
    "MAX_RETRY",
    "MEDIA_TYPE_JSON",
    "MEDIA_TYPE_WWW",
    "MEDIA_TYPE_XML",
    "NETWORK_RETRY_ERROR_CODES",
    "OAUTH_PATH_TEMPLATE",
    "RATE_LIMIT_RESET_HEADER",
    "RATE_LIMIT_STATUS_CODES",
    "REDIRECT_STATUS_CODES",
    "RETRY_AFTER_HEADER",
    "SERVER_RETRY_DELAY",
    "SERVER_RETRY_STATUS_CODES",
]

DEFAULT_TIMEOUT = 60.0

# Constants for retry configuration
MAX_RETRY = 5
SERVER_RETRY_DELAY = 60.0
RATE_LIMIT_STATUS_CODES = (408, 429)
SERVER_RETRY_STATUS_CODES = (500, 502)

# Constants for redirect configuration
DEFAULT_MAX_REDIRECTS = 20
REDIRECT_STATUS_CODES = (301, 302)

MEDIA_TYPE_JSON = "application/json"
MEDIA_TYPE_XML = "application/xml"
MEDIA_TYPE_WWW = "application/x-www-form-urlencoded"

RATE_LIMIT_RESET_HEADER = "X-Rate-Limit-Time-Reset-Ms"
RETRY_AFTER_HEADER = "x-retry-after"
API_LIMIT_REMAINING_HEADER = "X-BC-ApiLimit-Remaining"

# Transport error codes, numbered like libcurl's so they stay comparable
# with logs produced by other clients of the same API.
ERROR_UNKNOWN = -1
ERROR_UNSUPPORTED_PROTOCOL = 1
ERROR_COULDNT_RESOLVE_PROXY = 5
ERROR_COULDNT_CONNECT = 7
ERROR_OPERATION_TIMEDOUT = 28
ERROR_TOO_MANY_REDIRECTS = 47
ERROR_GOT_NOTHING = 52
ERROR_SEND_ERROR = 55
ERROR_RECV_ERROR = 56
NETWORK_RETRY_ERROR_CODES = (ERROR_OPERATION_TIMEDOUT, ERROR_GOT_NOTHING, ERROR_RECV_ERROR)

DEFAULT_API_URL = "https://api.bigcommerce.com"
DEFAULT_LOGIN_URL = "https://login.bigcommerce.com"
BASIC_PATH_PREFIX = "/api/v2"
OAUTH_PATH_TEMPLATE = "/stores/{store_hash}/v2"
