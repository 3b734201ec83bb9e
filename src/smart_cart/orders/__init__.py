"""Order submission payloads."""

from .payload import OrderType, build_order_payload, order_type_for

__all__ = ["OrderType", "build_order_payload", "order_type_for"]
