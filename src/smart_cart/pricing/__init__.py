"""Pricing engine and split bill generator."""

from .engine import (
    PriceBreakdown,
    apply_discount_cap,
    calculate_delivery_charge,
    calculate_discount,
    calculate_service_charge,
    calculate_subtotal,
    calculate_tax,
    format_money,
    item_discount,
    item_total,
    price_items,
)
from .split import SplitBillShare, SplitType, allocate_minor_units, generate_split_bills, split_equally

__all__ = [
    "PriceBreakdown",
    "apply_discount_cap",
    "calculate_delivery_charge",
    "calculate_discount",
    "calculate_service_charge",
    "calculate_subtotal",
    "calculate_tax",
    "format_money",
    "item_discount",
    "item_total",
    "price_items",
    "SplitBillShare",
    "SplitType",
    "allocate_minor_units",
    "generate_split_bills",
    "split_equally",
]
