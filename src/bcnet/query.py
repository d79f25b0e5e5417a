r"""Contain the query string encoding and the filter used by the
collection endpoints."""

from __future__ import annotations

__all__ = ["Filter", "build_query"]

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote_plus

QueryParams = Mapping[str, Any] | Iterable[tuple[str, Any]]


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _flatten(prefix: str, value: Any) -> Iterable[tuple[str, str]]:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield from _flatten(f"{prefix}[{key}]", item)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from _flatten(f"{prefix}[{index}]", item)
    else:
        yield prefix, _scalar(value)


def build_query(params: QueryParams) -> str:
    r"""Encode parameters as an ordered URL query string.

    Nested mappings and sequences are encoded with brackets
    (``a[b]=c``, ``a[0]=c``), booleans as ``1``/``0``. Parameters whose
    value is ``None`` are skipped.

    Args:
        params: A mapping or a sequence of ``(key, value)`` pairs. The
            order of the pairs is preserved.

    Returns:
        The encoded query string, without the leading ``?``.

    Example:
        ```pycon
        >>> from bcnet.query import build_query
        >>> build_query({"page": 2, "limit": 50})
        'page=2&limit=50'
        >>> build_query([("name", "Blue shirt"), ("is_visible", True)])
        'name=Blue+shirt&is_visible=1'
        >>> build_query({"ids": [1, 2]})
        'ids%5B0%5D=1&ids%5B1%5D=2'

        ```
    """
    pairs = params.items() if isinstance(params, Mapping) else params
    encoded = []
    for key, value in pairs:
        for name, item in _flatten(str(key), value):
            encoded.append(f"{quote_plus(name)}={quote_plus(item)}")
    return "&".join(encoded)


class Filter:
    r"""Implement the query parameters of a collection request.

    Args:
        **params: The filter parameters, e.g. ``page``, ``limit`` or
            any field filter supported by the endpoint.

    Example:
        ```pycon
        >>> from bcnet.query import Filter
        >>> Filter(page=3, limit=10).to_query()
        '?page=3&limit=10'
        >>> Filter.create(2).to_query()
        '?page=2'
        >>> Filter.create(None).to_query()
        ''

        ```
    """

    def __init__(self, **params: Any) -> None:
        self._params: dict[str, Any] = dict(params)

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}({self._params!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        return self._params == other._params

    @classmethod
    def create(cls, filter: Filter | Mapping[str, Any] | int | None = None) -> Filter:  # noqa: A002
        r"""Create a filter from the usual shorthand forms.

        Args:
            filter: An existing filter (returned as is), a mapping of
                parameters, a page number, or ``None`` for an empty
                filter.

        Returns:
            The filter.

        Raises:
            TypeError: if ``filter`` is not one of the supported types.
        """
        if isinstance(filter, Filter):
            return filter
        if filter is None:
            return cls()
        if isinstance(filter, int) and not isinstance(filter, bool):
            return cls(page=filter)
        if isinstance(filter, Mapping):
            return cls(**filter)
        msg = f"filter must be a Filter, a mapping, a page number or None, got {filter!r}"
        raise TypeError(msg)

    @property
    def params(self) -> dict[str, Any]:
        return dict(self._params)

    def update(self, **params: Any) -> Filter:
        r"""Set or replace filter parameters and return the filter."""
        self._params.update(params)
        return self

    def to_query(self) -> str:
        r"""Return the encoded query string, prefixed with ``?`` when the
        filter is not empty."""
        query = build_query(self._params)
        return f"?{query}" if query else ""
