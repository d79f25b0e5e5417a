r"""Contain the store API client.

The client builds endpoint URLs from its ``ClientSettings``, sends them
through a single ``Connection`` and wraps the decoded bodies into
``Resource`` objects. When the connection returns a raw string (XML
mode) or the ``False`` error sentinel, the value is returned unchanged.
"""

from __future__ import annotations

__all__ = ["Client"]

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from bcnet.config import API_LIMIT_REMAINING_HEADER
from bcnet.connection import Connection
from bcnet.query import Filter
from bcnet.resources import Resource, ResourceKind, get_resource_kind

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    import httpx

    from bcnet.settings import ClientSettings

logger: logging.Logger = logging.getLogger(__name__)

FilterLike = Filter | dict[str, Any] | int | None


def _is_unmappable(response: Any) -> bool:
    return response is False or response is None or isinstance(response, str)


class Client:
    r"""Implement a client for the store API.

    Args:
        settings: The credentials and transport options.
        connection: An optional preconfigured connection. If ``None``,
            a connection is created from ``settings`` on first use.
        transport: An optional httpx transport used by the connections
            created by the client, mainly for testing.

    Example:
        ```pycon
        >>> from bcnet import Client, ClientSettings
        >>> settings = ClientSettings.oauth("client", "token", "abc123")
        >>> with Client(settings) as client:
        ...     products = client.collection("product", filter={"limit": 10})  # doctest: +SKIP
        ...

        ```
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        connection: Connection | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._connection = connection
        self._transport = transport

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(api_path={self.api_path!r})"

    def __enter__(self) -> Client:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()

    @property
    def api_path(self) -> str:
        return self._settings.api_path

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def connection(self) -> Connection:
        r"""The connection used by the client, created on first use."""
        if self._connection is None:
            self._connection = self._create_connection()
        return self._connection

    def _create_connection(self) -> Connection:
        settings = self._settings
        connection = Connection(
            timeout=settings.timeout,
            verify=settings.verify,
            proxy=settings.proxy,
            follow_location=settings.follow_location,
            auto_retry=settings.auto_retry,
            fail_on_error=settings.fail_on_error,
            transport=self._transport,
        )
        if settings.auth_mode == "oauth":
            connection.authenticate_oauth(str(settings.client_id), str(settings.auth_token))
        else:
            connection.authenticate(str(settings.username), str(settings.api_key))
        logger.debug(f"Created {settings.auth_mode} connection for {settings.api_path}")
        return connection

    ############################
    #     Configuration        #
    ############################

    def fail_on_error(self, option: bool = True) -> None:
        r"""Raise exceptions on HTTP errors. Network faults always raise."""
        self.connection.fail_on_error(option)

    def use_xml(self, option: bool = True) -> None:
        r"""Return XML strings from the API instead of resources."""
        self.connection.use_xml(option)

    def verify_peer(self, option: bool) -> None:
        self.connection.verify_peer(option)

    def set_cipher(self, cipher: str | None) -> None:
        self.connection.set_cipher(cipher)

    def use_proxy(self, host: str, port: int | None = None) -> None:
        self.connection.use_proxy(host, port)

    def get_last_error(self) -> Any:
        r"""Return the error body of the last request when
        ``fail_on_error`` is not set, or ``None``."""
        return self.connection.last_error

    ############################
    #     Generic requests     #
    ############################

    def get_collection(
        self, path: str, kind: ResourceKind | str | None = None, filter: FilterLike = None  # noqa: A002
    ) -> Any:
        r"""Get a collection and map its items to resources.

        Args:
            path: The endpoint path relative to the API root.
            kind: The resource kind of the items, or ``None`` for
                generic resources.
            filter: Optional query parameters, see ``Filter.create``.

        Returns:
            A list of resources, the raw body in XML mode, or the value
            returned by the connection on error.
        """
        response = self.connection.get(self.api_path + path + Filter.create(filter).to_query())
        return self._map_collection(kind, response)

    def get_resource(self, path: str, kind: ResourceKind | str | None = None) -> Any:
        r"""Get a single resource, see ``get_collection``."""
        response = self.connection.get(self.api_path + path)
        return self._map_resource(kind, response)

    def get_count(self, path: str, filter: FilterLike = None) -> Any:  # noqa: A002
        r"""Get the ``count`` value of a count endpoint."""
        response = self.connection.get(self.api_path + path + Filter.create(filter).to_query())
        if _is_unmappable(response):
            return response
        return response["count"]

    def create_resource(self, path: str, fields: Mapping[str, Any] | str) -> Any:
        return self.connection.post(self.api_path + path, fields)

    def update_resource(self, path: str, fields: Mapping[str, Any] | str) -> Any:
        return self.connection.put(self.api_path + path, fields)

    def delete_resource(self, path: str) -> Any:
        return self.connection.delete(self.api_path + path)

    ############################
    #     Resource catalog     #
    ############################

    def collection(self, kind: ResourceKind | str, filter: FilterLike = None) -> Any:  # noqa: A002
        r"""Get the collection of a resource kind.

        Example:
            ```pycon
            >>> from bcnet import Client, ClientSettings
            >>> client = Client(ClientSettings.oauth("client", "token", "abc123"))
            >>> client.collection("webhook")  # doctest: +SKIP
            [Resource(webhook, {'id': 1, 'scope': 'store/order/*', ...})]

            ```
        """
        entry = get_resource_kind(kind)
        return self.get_collection(entry.path, entry, filter)

    def count(self, kind: ResourceKind | str, filter: FilterLike = None) -> Any:  # noqa: A002
        entry = get_resource_kind(kind)
        return self.get_count(entry.count_path(), filter)

    def fetch(self, kind: ResourceKind | str, id: int | str) -> Any:  # noqa: A002
        entry = get_resource_kind(kind)
        return self.get_resource(entry.item_path(id), entry)

    def create(self, kind: ResourceKind | str, fields: Mapping[str, Any] | str) -> Any:
        entry = get_resource_kind(kind)
        return self.create_resource(entry.path, fields)

    def update(
        self, kind: ResourceKind | str, id: int | str, fields: Mapping[str, Any] | str  # noqa: A002
    ) -> Any:
        entry = get_resource_kind(kind)
        return self.update_resource(entry.item_path(id), fields)

    def delete(self, kind: ResourceKind | str, id: int | str) -> Any:  # noqa: A002
        entry = get_resource_kind(kind)
        return self.delete_resource(entry.item_path(id))

    ############################
    #     Store endpoints      #
    ############################

    def get_time(self) -> Any:
        r"""Ping the time endpoint and return the store time as an aware
        UTC ``datetime``."""
        response = self.connection.get(self.api_path + "/time")
        if _is_unmappable(response):
            return response
        return datetime.fromtimestamp(int(response["time"]), tz=timezone.utc)

    def get_store(self) -> Any:
        return self.connection.get(self.api_path + "/store")

    def get_requests_remaining(self) -> int | bool:
        r"""Return the number of API requests remaining, as reported by
        the last response.

        If no request was made yet, the time endpoint is pinged to get
        the value. ``False`` is returned if that request fails.
        """
        limit = self.connection.get_header(API_LIMIT_REMAINING_HEADER)
        if not limit:
            if not self.get_time():
                return False
            limit = self.connection.get_header(API_LIMIT_REMAINING_HEADER)
        try:
            return int(limit or 0)
        except ValueError:
            logger.debug(f"Invalid {API_LIMIT_REMAINING_HEADER} header: {limit!r}")
            return 0

    def get_auth_token(self, params: Mapping[str, Any]) -> Any:
        r"""Swap a temporary authorization code for a long-lived auth
        token.

        Args:
            params: The OAuth parameters (``client_id``,
                ``client_secret``, ``code``, ``scope``,
                ``redirect_uri``, ``context``).

        Returns:
            The decoded token response.
        """
        settings = self._settings
        payload = {"grant_type": "authorization_code", **params}
        with Connection(
            timeout=settings.timeout,
            verify=settings.verify,
            proxy=settings.proxy,
            fail_on_error=settings.fail_on_error,
            transport=self._transport,
        ) as connection:
            connection.use_urlencoded()
            return connection.post(settings.login_url.rstrip("/") + "/oauth2/token", payload)

    ############################
    #     Mapping              #
    ############################

    def _map_collection(self, kind: ResourceKind | str | None, response: Any) -> Any:
        if _is_unmappable(response):
            return response
        return [Resource(item, kind=kind, client=self) for item in response]

    def _map_resource(self, kind: ResourceKind | str | None, response: Any) -> Any:
        if _is_unmappable(response):
            return response
        return Resource(response, kind=kind, client=self)
