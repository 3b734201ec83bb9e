"""Order submission payload for the external order service."""

from __future__ import annotations

from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Optional, Union

from ..cart.models import BranchId, CartItem, ServiceType, to_decimal
from ..cart.store import CartService
from ..pricing.split import SplitBillShare
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DEVICE_INFO = "WEB_APP"


class OrderType(IntEnum):
    DELIVERY = 1
    TAKEAWAY = 2
    DINE_IN = 3


def order_type_for(service_type: Union[ServiceType, str]) -> OrderType:
    """Map a service type to the order service enum; anything else is takeaway."""
    service_type = ServiceType.parse(service_type)
    if service_type is ServiceType.DELIVERY:
        return OrderType.DELIVERY
    if service_type is ServiceType.DINE_IN:
        return OrderType.DINE_IN
    return OrderType.TAKEAWAY


def _external_id(value: Any) -> Any:
    """Numeric identifiers go out as ints, anything else unchanged."""
    text = str(value)
    return int(text) if text.isdigit() else value


def _order_item(item: CartItem) -> Dict[str, Any]:
    order_item: Dict[str, Any] = {
        "menuItemId": _external_id(item.catalog_id),
        "quantity": item.quantity,
    }
    if item.variant_id is not None:
        order_item["variantId"] = _external_id(item.variant_id)

    modifiers = [
        {"modifierId": _external_id(modifier_id), "quantity": qty}
        for modifier_id, qty in item.selected_modifiers.items()
        if item.find_modifier(modifier_id) is not None
    ]
    if modifiers:
        order_item["modifiers"] = modifiers

    customizations = []
    for customization_id, option_id in item.selected_customizations.items():
        customization = item.find_customization(customization_id)
        if customization is None or customization.find_option(option_id) is None:
            continue
        customizations.append(
            {"customizationId": _external_id(customization_id), "optionId": _external_id(option_id)}
        )
    if customizations:
        order_item["customizations"] = customizations
    return order_item


def _order_package(item: CartItem) -> Dict[str, Any]:
    return {
        "packageId": _external_id(item.catalog_id[len("deal-"):]),
        "quantity": item.quantity,
        "menuItems": list(item.menu_items),
        "subMenuItems": list(item.sub_menu_items),
    }


def _split_bill(share: SplitBillShare) -> Dict[str, Any]:
    return {
        "splitType": int(share.split_type),
        "price": float(Decimal(share.amount) / 100),
        "mobileNumber": share.payer_handle,
        "itemName": share.label,
    }


def build_order_payload(
    cart: CartService,
    branch_id: BranchId,
    username: str,
    location_id: Optional[int] = None,
    tip_amount: Any = 0,
    device_info: str = DEFAULT_DEVICE_INFO,
    split_bills: Optional[Iterable[SplitBillShare]] = None,
) -> Dict[str, Any]:
    """
    Translate one branch's share of the cart into an order request.

    Args:
        cart: Cart service holding the lines and session context
        branch_id: Branch the order is placed with; other branches' lines are left out
        username: Customer username (or guest handle)
        location_id: Table/location for dine-in orders
        tip_amount: Tip in major currency units
        device_info: Originating device label
        split_bills: Shares produced by the split bill generator

    Returns:
        Plain dictionary ready for JSON encoding
    """
    service_type = cart.service_type
    items = cart.get_items_for_branch(branch_id)

    order_items: List[Dict[str, Any]] = []
    order_packages: List[Dict[str, Any]] = []
    for item in items:
        if item.is_deal:
            order_packages.append(_order_package(item))
        else:
            order_items.append(_order_item(item))

    payload: Dict[str, Any] = {
        "branchId": branch_id,
        "locationId": (location_id or 0) if service_type is ServiceType.DINE_IN else 0,
        "deviceInfo": device_info,
        "tipAmount": float(to_decimal(tip_amount)),
        "username": username,
        "orderType": int(order_type_for(service_type)),
        "orderItems": order_items,
        "orderPackages": order_packages,
        "splitBills": [_split_bill(share) for share in split_bills or []],
        "specialInstructions": cart.special_instructions,
        "allergenIds": cart.selected_allergen_ids,
    }

    if service_type is ServiceType.DELIVERY and cart.delivery_details is not None:
        details = cart.delivery_details
        payload["deliveryDetails"] = {
            "fullName": details.customer_name,
            "email": details.customer_email,
            "phoneNumber": details.customer_phone,
            "deliveryAddress": details.delivery_address,
            "apartment": details.apartment_unit,
            "deliveryInstruction": details.delivery_instructions,
            "prefferedDeliveryTime": details.preferred_time,
            "latitude": details.latitude,
            "longitude": details.longitude,
        }
    elif service_type is ServiceType.TAKEAWAY and cart.takeaway_details is not None:
        details = cart.takeaway_details
        payload["pickupDetails"] = {
            "name": details.customer_name,
            "email": details.customer_email,
            "phoneNumber": details.customer_phone,
            "pickupInstruction": details.special_instructions,
            "prefferedPickupTime": details.preferred_time,
        }

    logger.info(
        f"Built order payload for branch {branch_id}: {len(order_items)} item(s), "
        f"{len(order_packages)} package(s), order type {payload['orderType']}"
    )
    return payload
