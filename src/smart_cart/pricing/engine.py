"""
Pricing engine for cart line items.

Turns a list of line items plus a branch fee configuration into a priced
breakdown. Every step is exposed as its own function so callers can display
each figure on its own line.

No intermediate value is rounded. Only ``PriceBreakdown.for_display`` and
``format_money`` quantize, and they are meant for presentation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Optional, Union

from ..cart.models import (
    HUNDRED,
    TWO_PLACES,
    ZERO,
    Branch,
    CartItem,
    ServiceType,
    TaxAppliedType,
    resolve_discount_percentage,
)
from ..errors import MissingBranchConfigError
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PriceBreakdown:
    """Monetary totals for one priced set of line items."""

    subtotal: Decimal
    calculated_discount: Decimal
    applied_discount: Decimal
    service_charge: Decimal
    delivery_charge: Decimal
    tax: Decimal
    grand_total: Decimal
    currency: str = ""
    meets_minimum_delivery: bool = True

    @property
    def discount_capped(self) -> bool:
        return self.applied_discount < self.calculated_discount

    def for_display(self) -> Dict[str, Decimal]:
        """Every figure rounded half-up to two places."""
        return {
            "subtotal": _round(self.subtotal),
            "calculated_discount": _round(self.calculated_discount),
            "applied_discount": _round(self.applied_discount),
            "service_charge": _round(self.service_charge),
            "delivery_charge": _round(self.delivery_charge),
            "tax": _round(self.tax),
            "grand_total": _round(self.grand_total),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": str(self.subtotal),
            "calculatedDiscount": str(self.calculated_discount),
            "appliedDiscount": str(self.applied_discount),
            "serviceCharge": str(self.service_charge),
            "deliveryCharge": str(self.delivery_charge),
            "tax": str(self.tax),
            "grandTotal": str(self.grand_total),
            "currency": self.currency,
            "discountCapped": self.discount_capped,
            "meetsMinimumDelivery": self.meets_minimum_delivery,
        }


def _round(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal, currency: str = "") -> str:
    """Presentation string such as ``"PKR 1250.50"``."""
    text = f"{_round(amount):.2f}"
    return f"{currency} {text}" if currency else text


# ── Line level ────────────────────────────────────────────────────

def modifier_price(item: CartItem) -> Decimal:
    """Per-unit price of the selected modifiers and customization options."""
    total = ZERO
    for modifier_id, qty in item.selected_modifiers.items():
        modifier = item.find_modifier(modifier_id)
        if modifier is None:
            logger.debug(f"Selected modifier {modifier_id} not offered on {item.key}; ignored")
            continue
        total += modifier.price * qty

    for customization_id, option_id in item.selected_customizations.items():
        customization = item.find_customization(customization_id)
        option = customization.find_option(option_id) if customization else None
        if option is None:
            logger.debug(f"Selected option {customization_id}:{option_id} not offered on {item.key}; ignored")
            continue
        total += option.price
    return total


def line_unit_price(item: CartItem) -> Decimal:
    return item.unit_price + modifier_price(item)


def item_total(item: CartItem) -> Decimal:
    """``(unit price + modifier price) × quantity``."""
    return line_unit_price(item) * item.quantity


def item_discount(item: CartItem, as_of: Optional[date] = None) -> Decimal:
    """Discount for one line, capped at ``max_allowed_amount × quantity`` when a cap is set."""
    percentage = resolve_discount_percentage(item.discount, as_of=as_of)
    if percentage <= 0:
        return ZERO
    amount = item_total(item) * percentage / HUNDRED
    if item.max_allowed_amount > 0:
        return min(amount, item.max_allowed_amount * item.quantity)
    return amount


# ── Order level ───────────────────────────────────────────────────

def calculate_subtotal(items: Iterable[CartItem]) -> Decimal:
    return sum((item_total(item) for item in items), ZERO)


def calculate_discount(items: Iterable[CartItem], as_of: Optional[date] = None) -> Decimal:
    """Sum of per-line discounts before the branch cap."""
    return sum((item_discount(item, as_of=as_of) for item in items), ZERO)


def apply_discount_cap(calculated_discount: Decimal, branch: Branch) -> Decimal:
    """Branch-level cap; a ``max_discount_amount`` of 0 means unlimited."""
    if branch.max_discount_amount > 0:
        return min(calculated_discount, branch.max_discount_amount)
    return calculated_discount


def calculate_service_charge(
    subtotal: Decimal,
    applied_discount: Decimal,
    branch: Branch,
    service_type: Union[ServiceType, str],
    fee_responsible: bool = True,
) -> Decimal:
    """Service charge on the discounted subtotal, dine-in only."""
    if not fee_responsible or ServiceType.parse(service_type) is not ServiceType.DINE_IN:
        return ZERO
    return (subtotal - applied_discount) * branch.service_charge_percentage / HUNDRED


def calculate_delivery_charge(
    branch: Branch,
    service_type: Union[ServiceType, str],
    fee_responsible: bool = True,
) -> Decimal:
    """Flat delivery charge, delivery only."""
    if not fee_responsible or ServiceType.parse(service_type) is not ServiceType.DELIVERY:
        return ZERO
    return branch.delivery_charge


def calculate_tax(subtotal: Decimal, applied_discount: Decimal, branch: Branch) -> Decimal:
    """Tax on the full subtotal (``OnTotal``) or on the discounted subtotal."""
    if branch.tax_percentage <= 0:
        return ZERO
    if branch.tax_applied_type is TaxAppliedType.ON_TOTAL:
        base = subtotal
    else:
        base = subtotal - applied_discount
    return base * branch.tax_percentage / HUNDRED


def calculate_grand_total(
    subtotal: Decimal,
    service_charge: Decimal,
    delivery_charge: Decimal,
    tax: Decimal,
    applied_discount: Decimal,
) -> Decimal:
    return subtotal + service_charge + delivery_charge + tax - applied_discount


def price_items(
    items: Iterable[CartItem],
    branch: Optional[Branch],
    service_type: Union[ServiceType, str],
    fee_responsible: bool = True,
    as_of: Optional[date] = None,
) -> PriceBreakdown:
    """
    Price a set of line items against a branch fee configuration.

    Args:
        items: Line items, usually already filtered to one branch
        branch: Fee configuration of the branch being priced
        service_type: Active service type of the cart
        fee_responsible: False when pricing a branch that does not carry
            the service and delivery charges for this order
        as_of: When given, structured discounts that ended before this
            date are ignored

    Returns:
        PriceBreakdown with every intermediate figure unrounded

    Raises:
        MissingBranchConfigError: if ``branch`` is None
    """
    if branch is None:
        raise MissingBranchConfigError()

    items = list(items)
    service_type = ServiceType.parse(service_type)

    subtotal = calculate_subtotal(items)
    calculated_discount = calculate_discount(items, as_of=as_of)
    applied_discount = apply_discount_cap(calculated_discount, branch)
    service_charge = calculate_service_charge(
        subtotal, applied_discount, branch, service_type, fee_responsible
    )
    delivery_charge = calculate_delivery_charge(branch, service_type, fee_responsible)
    tax = calculate_tax(subtotal, applied_discount, branch)
    grand_total = calculate_grand_total(
        subtotal, service_charge, delivery_charge, tax, applied_discount
    )

    meets_minimum = True
    if service_type is ServiceType.DELIVERY and branch.min_delivery_amount > 0:
        meets_minimum = subtotal >= branch.min_delivery_amount

    logger.debug(
        f"Priced {len(items)} line(s) for branch {branch.id}: subtotal={subtotal} "
        f"discount={applied_discount}/{calculated_discount} total={grand_total}"
    )

    return PriceBreakdown(
        subtotal=subtotal,
        calculated_discount=calculated_discount,
        applied_discount=applied_discount,
        service_charge=service_charge,
        delivery_charge=delivery_charge,
        tax=tax,
        grand_total=grand_total,
        currency=branch.currency,
        meets_minimum_delivery=meets_minimum,
    )
