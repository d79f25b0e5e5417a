r"""Contain the catalog of store resources and the generic resource
object returned by the client.

Each resource kind is described by a ``ResourceKind`` entry: its
collection path and the fields the API refuses on create and update. The
catalog is a static mapping, so adding a resource only requires a new
entry.
"""

from __future__ import annotations

__all__ = ["RESOURCES", "Resource", "ResourceKind", "get_resource_kind"]

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bcnet.client import Client


@dataclass(frozen=True)
class ResourceKind:
    r"""Describe a kind of store resource.

    Args:
        name: The catalog key, e.g. ``"product"``.
        path: The collection path relative to the API root, e.g.
            ``"/products"``.
        ignore_on_create: Fields removed from the payload on create.
        ignore_on_update: Fields removed from the payload on update.
    """

    name: str
    path: str
    ignore_on_create: tuple[str, ...] = ("id",)
    ignore_on_update: tuple[str, ...] = ("id",)

    def item_path(self, id: int | str) -> str:  # noqa: A002
        return f"{self.path}/{id}"

    def count_path(self) -> str:
        return f"{self.path}/count"


def _entry(name: str, path: str, *ignored: str) -> ResourceKind:
    fields = ("id", *ignored)
    return ResourceKind(name=name, path=path, ignore_on_create=fields, ignore_on_update=fields)


RESOURCES: dict[str, ResourceKind] = {
    kind.name: kind
    for kind in (
        _entry("blog_post", "/blog/posts", "preview_url"),
        _entry("brand", "/brands"),
        _entry("category", "/categories", "parent_category_list"),
        _entry("coupon", "/coupons", "num_uses"),
        _entry("customer", "/customers", "date_created", "date_modified", "addresses"),
        _entry("customer_group", "/customer_groups"),
        _entry("gift_certificate", "/gift_certificates", "balance", "purchase_date"),
        _entry("option", "/options", "values"),
        _entry("option_set", "/optionsets", "options"),
        _entry("order", "/orders", "date_created", "date_modified", "status"),
        _entry("order_status", "/orderstatuses"),
        _entry("product", "/products", "date_created", "date_modified", "calculated_price"),
        _entry("redirect", "/redirects"),
        _entry("shipment", "/orders/shipments", "date_created", "order_id"),
        _entry("sku", "/products/skus", "product_id"),
        _entry("webhook", "/hooks", "created_at", "updated_at"),
    )
}


def get_resource_kind(kind: ResourceKind | str) -> ResourceKind:
    r"""Return the catalog entry for a resource kind.

    Args:
        kind: A ``ResourceKind`` (returned as is) or a catalog key.

    Returns:
        The resource kind.

    Raises:
        KeyError: If the key is not in the catalog.

    Example:
        ```pycon
        >>> from bcnet.resources import get_resource_kind
        >>> get_resource_kind("webhook").path
        '/hooks'

        ```
    """
    if isinstance(kind, ResourceKind):
        return kind
    try:
        return RESOURCES[kind]
    except KeyError:
        msg = f"Unknown resource kind {kind!r}. Valid kinds are: {sorted(RESOURCES)}"
        raise KeyError(msg) from None


class Resource:
    r"""Implement a store resource decoded from the API.

    Fields are available as attributes and as items. A field named like
    a member of the class (``kind``, ``to_dict``, ``create``, ``update``,
    ``delete``, ...) is only reachable as an item, e.g.
    ``resource["kind"]``.

    Args:
        fields: The decoded fields of the resource.
        kind: The resource kind, or ``None`` for a generic resource.
        client: The client used by ``create``, ``update`` and
            ``delete``.

    Example:
        ```pycon
        >>> from bcnet.resources import Resource
        >>> product = Resource({"id": 5, "name": "Shoes"}, kind="product")
        >>> product.name
        'Shoes'
        >>> product.create_fields()
        {'name': 'Shoes'}
        >>> Resource({"id": 7, "kind": "digital"}, kind="product")["kind"]
        'digital'

        ```
    """

    def __init__(
        self,
        fields: Mapping[str, Any] | None = None,
        kind: ResourceKind | str | None = None,
        client: Client | None = None,
    ) -> None:
        object.__setattr__(self, "_fields", dict(fields or {}))
        object.__setattr__(self, "_kind", None if kind is None else get_resource_kind(kind))
        object.__setattr__(self, "_client", client)

    def __repr__(self) -> str:
        name = self._kind.name if self._kind is not None else "resource"
        return f"{self.__class__.__qualname__}({name}, {self._fields!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resource):
            return NotImplemented
        return self._kind == other._kind and self._fields == other._fields

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._fields[name]
        except KeyError:
            msg = f"{self.__class__.__qualname__!r} object has no field {name!r}"
            raise AttributeError(msg) from None

    def __setattr__(self, name: str, value: Any) -> None:
        self._fields[name] = value

    def __getitem__(self, name: str) -> Any:
        return self._fields[name]

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    @property
    def kind(self) -> ResourceKind | None:
        return self._kind

    def to_dict(self) -> dict[str, Any]:
        return dict(self._fields)

    def create_fields(self) -> dict[str, Any]:
        r"""Return the fields sent when creating the resource."""
        ignored = self._kind.ignore_on_create if self._kind is not None else ("id",)
        return {key: value for key, value in self._fields.items() if key not in ignored}

    def update_fields(self) -> dict[str, Any]:
        r"""Return the fields sent when updating the resource."""
        ignored = self._kind.ignore_on_update if self._kind is not None else ("id",)
        return {key: value for key, value in self._fields.items() if key not in ignored}

    def create(self) -> Any:
        return self._bound_client().create(self._bound_kind(), self.create_fields())

    def update(self) -> Any:
        return self._bound_client().update(
            self._bound_kind(), self._fields["id"], self.update_fields()
        )

    def delete(self) -> Any:
        return self._bound_client().delete(self._bound_kind(), self._fields["id"])

    def _bound_client(self) -> Client:
        if self._client is None:
            msg = "The resource is not bound to a client"
            raise RuntimeError(msg)
        return self._client

    def _bound_kind(self) -> ResourceKind:
        if self._kind is None:
            msg = "The resource has no kind"
            raise RuntimeError(msg)
        return self._kind
