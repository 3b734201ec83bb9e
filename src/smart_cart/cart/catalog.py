"""Catalog entries accepted by the cart.

Catalog data is a tagged union: every payload carries ``kind`` set to
``"menuItem"`` or ``"deal"``, and ``parse_catalog_item`` switches on that tag
alone. Nothing downstream inspects the shape of a payload to guess its kind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Union

from ..errors import InvalidCatalogItemError
from .models import (
    DEAL_KIND,
    MENU_ITEM_KIND,
    ZERO,
    Customization,
    DiscountLike,
    Modifier,
    Variant,
    parse_discount,
    to_decimal,
)


@dataclass
class MenuItemEntry:
    id: Any
    name: str
    description: str = ""
    price: Any = None
    image: str = ""
    category: str = ""
    variations: List[Variant] = field(default_factory=list)
    modifiers: List[Modifier] = field(default_factory=list)
    customizations: List[Customization] = field(default_factory=list)
    discount: DiscountLike = None
    max_allowed_amount: Decimal = ZERO

    kind = MENU_ITEM_KIND

    @property
    def catalog_id(self) -> str:
        return str(self.id)

    def find_variation(self, name: str) -> Union[Variant, None]:
        for variant in self.variations:
            if variant.name == name:
                return variant
        return None


@dataclass
class DealEntry:
    deal_id: Any
    name: str
    description: str = ""
    price: Any = None
    image: str = ""
    discount: DiscountLike = None
    menu_items: List[Dict[str, Any]] = field(default_factory=list)
    sub_menu_items: List[Dict[str, Any]] = field(default_factory=list)

    kind = DEAL_KIND
    variations = ()

    @property
    def catalog_id(self) -> str:
        # Namespaced so a deal never merges with a menu item sharing its id.
        return f"deal-{self.deal_id}"

    def find_variation(self, name: str) -> None:
        return None


CatalogItem = Union[MenuItemEntry, DealEntry]


def _require(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    raise InvalidCatalogItemError(f"Catalog item is missing {' / '.join(keys)}")


def parse_catalog_item(data: Mapping[str, Any]) -> CatalogItem:
    """Turn a raw catalog payload into a typed entry.

    Raises:
        InvalidCatalogItemError: if ``kind`` is missing or unknown, or the
            entry has no identifier.
    """
    if isinstance(data, (MenuItemEntry, DealEntry)):
        return data

    kind = data.get("kind")
    if kind == MENU_ITEM_KIND:
        return MenuItemEntry(
            id=_require(data, "id", "menuItemId"),
            name=data.get("name", "") or "",
            description=data.get("description", "") or "",
            price=data.get("price"),
            image=data.get("image", "") or "",
            category=data.get("category", "") or "",
            variations=[Variant.from_dict(v) for v in data.get("variations") or []],
            modifiers=[Modifier.from_dict(m) for m in data.get("modifiers") or []],
            customizations=[Customization.from_dict(c) for c in data.get("customizations") or []],
            discount=parse_discount(data.get("discount")),
            max_allowed_amount=to_decimal(data.get("maxAllowedAmount")),
        )
    if kind == DEAL_KIND:
        return DealEntry(
            deal_id=_require(data, "dealId"),
            name=data.get("name", "") or "",
            description=data.get("description", "") or "",
            price=data.get("price"),
            image=data.get("image", "") or "",
            discount=parse_discount(data.get("discount")),
            menu_items=list(data.get("menuItems") or []),
            sub_menu_items=list(data.get("subMenuItems") or []),
        )
    raise InvalidCatalogItemError(f"Unknown catalog item kind: {kind!r}")
