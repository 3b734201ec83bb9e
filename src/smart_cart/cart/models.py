"""
Value types for the cart: branches, discounts, item options and line items.

Money values are held as ``Decimal`` and serialised as strings so that a
round trip through JSON never introduces float error. Loose inputs coming
from catalog or branch payloads are coerced with ``to_decimal`` and
``to_quantity`` instead of raising.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from ..utils.logging import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")

MENU_ITEM_KIND = "menuItem"
DEAL_KIND = "deal"
DEFAULT_VARIANT_KEY = "default"

BranchId = Union[int, str]


# ── Coercion ──────────────────────────────────────────────────────

def to_decimal(value: Any) -> Decimal:
    """Coerce a price-like value to ``Decimal``.

    ``None``, empty strings, NaN, infinities and anything unparseable
    become ``Decimal("0")``.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            logger.debug(f"Unparseable money value {value!r} treated as 0")
            return ZERO
    if not result.is_finite():
        logger.debug(f"Non-finite money value {value!r} treated as 0")
        return ZERO
    return result


def to_quantity(value: Any) -> int:
    """Coerce a quantity to ``int``; NaN or non-numeric input becomes 0."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable quantity {value!r} treated as 0")
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number)


def to_two_places(value: Any) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def parse_date(value: Any) -> Optional[date]:
    """Parse an ISO date or datetime; malformed input yields ``None``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except ValueError:
        logger.debug(f"Unparseable date {value!r} ignored")
        return None


def _money_str(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


# ── Enums ─────────────────────────────────────────────────────────

class ServiceType(str, Enum):
    DELIVERY = "delivery"
    TAKEAWAY = "takeaway"
    DINE_IN = "dine-in"
    RESERVATION = "reservation"

    @classmethod
    def parse(cls, value: Union["ServiceType", str]) -> "ServiceType":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class TaxAppliedType(str, Enum):
    ON_TOTAL = "OnTotal"
    ON_DISCOUNTED_TOTAL = "OnDiscountedTotal"

    @classmethod
    def parse(cls, value: Any) -> "TaxAppliedType":
        """Anything other than ``OnTotal`` taxes the discounted total."""
        if isinstance(value, cls):
            return value
        if str(value or "").strip().lower() == "ontotal":
            return cls.ON_TOTAL
        return cls.ON_DISCOUNTED_TOTAL


class SplitBillMode(str, Enum):
    EQUALITY = "equality"
    ITEMS = "items"

    @classmethod
    def parse(cls, value: Union["SplitBillMode", str]) -> "SplitBillMode":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


# ── Branch ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Branch:
    """A restaurant location together with its fee configuration."""

    id: BranchId
    name: str = ""
    currency: str = ""
    delivery_charge: Decimal = ZERO
    service_charge_percentage: Decimal = ZERO
    tax_percentage: Decimal = ZERO
    tax_applied_type: TaxAppliedType = TaxAppliedType.ON_DISCOUNTED_TOTAL
    max_discount_amount: Decimal = ZERO
    min_delivery_amount: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Branch":
        """Build a branch from a branch search record.

        Fee fields are formatted to two decimal places on the way in.
        """
        return cls._from_record(data, to_two_places)

    @classmethod
    def from_state(cls, data: Mapping[str, Any]) -> "Branch":
        """Rebuild a branch written by ``to_dict``; fee values are kept as stored."""
        return cls._from_record(data, to_decimal)

    @classmethod
    def _from_record(cls, data: Mapping[str, Any], money: Callable[[Any], Decimal]) -> "Branch":
        return cls(
            id=data.get("branchId", data.get("id")),
            name=data.get("branchName", data.get("name", "")) or "",
            currency=data.get("branchCurrency", data.get("currency", "")) or "",
            delivery_charge=money(data.get("deliveryCharges")),
            service_charge_percentage=money(data.get("serviceCharges")),
            tax_percentage=money(data.get("taxPercentage")),
            tax_applied_type=TaxAppliedType.parse(data.get("taxAppliedType")),
            max_discount_amount=money(data.get("maxDiscountAmount")),
            min_delivery_amount=money(data.get("minDeliveryAmount")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branchId": self.id,
            "branchName": self.name,
            "branchCurrency": self.currency,
            "deliveryCharges": str(self.delivery_charge),
            "serviceCharges": str(self.service_charge_percentage),
            "taxPercentage": str(self.tax_percentage),
            "taxAppliedType": self.tax_applied_type.value,
            "maxDiscountAmount": str(self.max_discount_amount),
            "minDeliveryAmount": str(self.min_delivery_amount),
        }


# ── Discounts ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Discount:
    """A named percentage discount with an optional end date."""

    value: Decimal
    id: Any = None
    name: str = ""
    end_date: Optional[date] = None

    def is_expired(self, as_of: Optional[date]) -> bool:
        return as_of is not None and self.end_date is not None and self.end_date < as_of

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "value": str(self.value),
            "endDate": self.end_date.isoformat() if self.end_date else None,
        }


DiscountLike = Union[None, Decimal, Discount]


def parse_discount(raw: Any) -> DiscountLike:
    """Normalise a discount field: bare number, ``{value}`` record or absent."""
    if raw is None or isinstance(raw, Discount):
        return raw
    if isinstance(raw, Mapping):
        return Discount(
            value=to_decimal(raw.get("value")),
            id=raw.get("id"),
            name=raw.get("name", "") or "",
            end_date=parse_date(raw.get("endDate")),
        )
    return to_decimal(raw)


def resolve_discount_percentage(discount: Any, as_of: Optional[date] = None) -> Decimal:
    """Percentage carried by a discount field; absent or expired means 0."""
    parsed = parse_discount(discount)
    if parsed is None:
        return ZERO
    if isinstance(parsed, Discount):
        if parsed.is_expired(as_of):
            return ZERO
        return parsed.value
    return parsed


def _discount_to_dict(discount: DiscountLike) -> Any:
    if isinstance(discount, Discount):
        return discount.to_dict()
    return _money_str(discount)


# ── Item options ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Modifier:
    id: Any
    name: str
    price: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Modifier":
        return cls(id=data.get("id"), name=data.get("name", ""), price=to_decimal(data.get("price")))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": str(self.price)}


@dataclass(frozen=True)
class CustomizationOption:
    id: Any
    name: str
    price: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustomizationOption":
        return cls(id=data.get("id"), name=data.get("name", ""), price=to_decimal(data.get("price")))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": str(self.price)}


@dataclass(frozen=True)
class Customization:
    """A single-choice option group."""

    id: Any
    name: str
    options: Tuple[CustomizationOption, ...] = ()

    def find_option(self, option_id: Any) -> Optional[CustomizationOption]:
        for option in self.options:
            if str(option.id) == str(option_id):
                return option
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Customization":
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            options=tuple(CustomizationOption.from_dict(o) for o in data.get("options") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "options": [o.to_dict() for o in self.options]}


@dataclass(frozen=True)
class Variant:
    """A size/type choice. ``discounted_price`` is informational only."""

    id: Any
    name: str
    price: Decimal = ZERO
    discounted_price: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Variant":
        discounted = data.get("discountedPrice")
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            price=to_decimal(data.get("price")),
            discounted_price=None if discounted is None else to_decimal(discounted),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "discountedPrice": _money_str(self.discounted_price),
        }


@dataclass
class ItemSelection:
    """What the customer picked when adding an item."""

    variant_id: Any = None
    variant_name: Optional[str] = None
    variant_price: Optional[Decimal] = None
    modifiers: Dict[str, int] = field(default_factory=dict)
    customizations: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.variant_price is not None:
            self.variant_price = to_decimal(self.variant_price)
        self.modifiers = {str(k): to_quantity(v) for k, v in self.modifiers.items() if to_quantity(v) > 0}
        self.customizations = {str(k): str(v) for k, v in self.customizations.items()}

    @classmethod
    def for_variant(cls, variant: Variant, **kwargs: Any) -> "ItemSelection":
        return cls(variant_id=variant.id, variant_name=variant.name, variant_price=variant.price, **kwargs)


# ── Line item ─────────────────────────────────────────────────────

@dataclass
class CartItem:
    """One cart entry: a quantity of a customised catalog item from one branch."""

    catalog_id: str
    name: str
    unit_price: Decimal
    branch_id: BranchId
    branch_name: str = ""
    kind: str = MENU_ITEM_KIND
    quantity: int = 1
    description: str = ""
    image: str = ""
    variant_id: Any = None
    variant_name: Optional[str] = None
    variant_price: Optional[Decimal] = None
    selected_modifiers: Dict[str, int] = field(default_factory=dict)
    selected_customizations: Dict[str, str] = field(default_factory=dict)
    modifiers: List[Modifier] = field(default_factory=list)
    customizations: List[Customization] = field(default_factory=list)
    discount: DiscountLike = None
    max_allowed_amount: Decimal = ZERO
    menu_items: List[Dict[str, Any]] = field(default_factory=list)
    sub_menu_items: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def variant_key(self) -> str:
        if self.variant_name:
            return str(self.variant_name)
        if self.variant_id is not None:
            return str(self.variant_id)
        return DEFAULT_VARIANT_KEY

    @property
    def identity(self) -> Tuple[str, str, str]:
        return (self.catalog_id, self.variant_key, str(self.branch_id))

    @property
    def key(self) -> str:
        return "-".join(self.identity)

    @property
    def is_deal(self) -> bool:
        return self.kind == DEAL_KIND

    def matches(self, key: Any) -> bool:
        """True if ``key`` is this item's catalog id or its composite key.

        For deals the catalog id carries the ``deal-`` prefix.
        """
        key = str(key)
        return self.catalog_id == key or self.key == key

    def find_modifier(self, modifier_id: Any) -> Optional[Modifier]:
        for modifier in self.modifiers:
            if str(modifier.id) == str(modifier_id):
                return modifier
        return None

    def find_customization(self, customization_id: Any) -> Optional[Customization]:
        for customization in self.customizations:
            if str(customization.id) == str(customization_id):
                return customization
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "catalogId": self.catalog_id,
            "kind": self.kind,
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "unitPrice": str(self.unit_price),
            "quantity": self.quantity,
            "variantId": self.variant_id,
            "variantName": self.variant_name,
            "variantPrice": _money_str(self.variant_price),
            "selectedModifiers": dict(self.selected_modifiers),
            "selectedCustomizations": dict(self.selected_customizations),
            "modifiers": [m.to_dict() for m in self.modifiers],
            "customizations": [c.to_dict() for c in self.customizations],
            "discount": _discount_to_dict(self.discount),
            "maxAllowedAmount": str(self.max_allowed_amount),
            "branchId": self.branch_id,
            "branchName": self.branch_name,
            "menuItems": list(self.menu_items),
            "subMenuItems": list(self.sub_menu_items),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CartItem":
        variant_price = data.get("variantPrice")
        return cls(
            catalog_id=str(data["catalogId"]),
            kind=data.get("kind", MENU_ITEM_KIND),
            name=data.get("name", ""),
            description=data.get("description", "") or "",
            image=data.get("image", "") or "",
            unit_price=to_decimal(data.get("unitPrice")),
            quantity=to_quantity(data.get("quantity", 1)),
            variant_id=data.get("variantId"),
            variant_name=data.get("variantName"),
            variant_price=None if variant_price is None else to_decimal(variant_price),
            selected_modifiers={
                str(k): to_quantity(v) for k, v in (data.get("selectedModifiers") or {}).items()
            },
            selected_customizations={
                str(k): str(v) for k, v in (data.get("selectedCustomizations") or {}).items()
            },
            modifiers=[Modifier.from_dict(m) for m in data.get("modifiers") or []],
            customizations=[Customization.from_dict(c) for c in data.get("customizations") or []],
            discount=parse_discount(data.get("discount")),
            max_allowed_amount=to_decimal(data.get("maxAllowedAmount")),
            branch_id=data["branchId"],
            branch_name=data.get("branchName", "") or "",
            menu_items=list(data.get("menuItems") or []),
            sub_menu_items=list(data.get("subMenuItems") or []),
        )


# ── Session details ───────────────────────────────────────────────

@dataclass
class DeliveryDetails:
    customer_name: str
    customer_email: str
    customer_phone: str
    delivery_address: str
    apartment_unit: str = ""
    delivery_instructions: str = ""
    preferred_time: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "customerPhone": self.customer_phone,
            "deliveryAddress": self.delivery_address,
            "apartmentUnit": self.apartment_unit,
            "deliveryInstructions": self.delivery_instructions,
            "preferredTime": self.preferred_time,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeliveryDetails":
        return cls(
            customer_name=data.get("customerName", ""),
            customer_email=data.get("customerEmail", ""),
            customer_phone=data.get("customerPhone", ""),
            delivery_address=data.get("deliveryAddress", ""),
            apartment_unit=data.get("apartmentUnit") or "",
            delivery_instructions=data.get("deliveryInstructions") or "",
            preferred_time=data.get("preferredTime") or "",
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
        )


@dataclass
class TakeawayDetails:
    customer_name: str
    customer_email: str
    customer_phone: str
    special_instructions: str = ""
    preferred_time: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "customerPhone": self.customer_phone,
            "specialInstructions": self.special_instructions,
            "preferredTime": self.preferred_time,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TakeawayDetails":
        return cls(
            customer_name=data.get("customerName", ""),
            customer_email=data.get("customerEmail", ""),
            customer_phone=data.get("customerPhone", ""),
            special_instructions=data.get("specialInstructions") or "",
            preferred_time=data.get("preferredTime") or "",
        )
