r"""Contain the settings used to configure a store API client."""

from __future__ import annotations

__all__ = ["ClientSettings"]

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from bcnet.config import (
    BASIC_PATH_PREFIX,
    DEFAULT_API_URL,
    DEFAULT_LOGIN_URL,
    DEFAULT_TIMEOUT,
    OAUTH_PATH_TEMPLATE,
)


def _require(settings: Mapping[str, Any], *keys: str) -> None:
    for key in keys:
        if settings.get(key) is None:
            msg = f"'{key}' must be provided"
            raise ValueError(msg)


@dataclass(frozen=True)
class ClientSettings:
    r"""Implement the credentials and transport options of a store API
    client.

    Exactly one authentication mode is configured: basic authentication
    (``username`` + ``api_key`` against ``store_url``) or OAuth
    (``client_id`` + ``auth_token`` against ``store_hash``). Use the
    ``basic``, ``oauth`` or ``from_mapping`` constructors rather than
    the default one.

    Example:
        ```pycon
        >>> from bcnet import ClientSettings
        >>> settings = ClientSettings.basic("https://store.example.com/", "admin", "secret")
        >>> settings.api_path
        'https://store.example.com/api/v2'
        >>> settings = ClientSettings.oauth("client", "token", "abc123")
        >>> settings.api_path
        'https://api.bigcommerce.com/stores/abc123/v2'

        ```
    """

    store_url: str | None = None
    username: str | None = None
    api_key: str | None = None
    client_id: str | None = None
    auth_token: str | None = None
    store_hash: str | None = None
    api_url: str = DEFAULT_API_URL
    login_url: str = DEFAULT_LOGIN_URL
    timeout: float = DEFAULT_TIMEOUT
    fail_on_error: bool = False
    auto_retry: bool = True
    verify: bool = True
    proxy: str | None = None
    follow_location: bool = False

    def __post_init__(self) -> None:
        if self.client_id is not None:
            _require(self.__dict__, "auth_token", "store_hash")
        else:
            _require(self.__dict__, "store_url", "username", "api_key")

    @classmethod
    def basic(cls, store_url: str, username: str, api_key: str, **options: Any) -> ClientSettings:
        r"""Create settings using HTTP basic authentication."""
        return cls(store_url=store_url, username=username, api_key=api_key, **options)

    @classmethod
    def oauth(
        cls, client_id: str, auth_token: str, store_hash: str, **options: Any
    ) -> ClientSettings:
        r"""Create settings using OAuth token authentication."""
        return cls(client_id=client_id, auth_token=auth_token, store_hash=store_hash, **options)

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> ClientSettings:
        r"""Create settings from a mapping.

        OAuth is used when ``client_id`` is present, basic
        authentication otherwise.

        Args:
            settings: The settings. OAuth requires ``auth_token`` and
                ``store_hash``; basic authentication requires
                ``store_url``, ``username`` and ``api_key``. Transport
                options (``timeout``, ``fail_on_error``, ...) are
                accepted too.

        Returns:
            The settings.

        Raises:
            ValueError: If a required key is missing.

        Example:
            ```pycon
            >>> from bcnet import ClientSettings
            >>> ClientSettings.from_mapping(
            ...     {"client_id": "client", "auth_token": "token", "store_hash": "abc123"}
            ... ).auth_mode
            'oauth'
            >>> ClientSettings.from_mapping({"store_url": "https://store.example.com"})
            Traceback (most recent call last):
            ...
            ValueError: 'username' must be provided

            ```
        """
        return cls(**settings)

    @property
    def auth_mode(self) -> str:
        r"""``"oauth"`` or ``"basic"``."""
        return "oauth" if self.client_id is not None else "basic"

    @property
    def api_path(self) -> str:
        r"""The full URL of the store API."""
        if self.auth_mode == "oauth":
            return self.api_url.rstrip("/") + OAUTH_PATH_TEMPLATE.format(
                store_hash=self.store_hash
            )
        return str(self.store_url).rstrip("/") + BASIC_PATH_PREFIX
