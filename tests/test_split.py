"""Tests for split bill generation."""

from decimal import Decimal

import pytest

from smart_cart.cart.models import ItemSelection, SplitBillMode
from smart_cart.pricing.engine import calculate_subtotal
from smart_cart.pricing.split import (
    TOTAL_BILL_LABEL,
    SplitType,
    allocate_minor_units,
    generate_split_bills,
    sanitize_payer_handle,
    split_equally,
    to_minor_units,
)


@pytest.fixture
def filled_cart(cart, burger, fries):
    cart.add_item(burger, variation_key="Large", selection=ItemSelection(modifiers={2: 1}))
    cart.add_item(burger, variation_key="Large")
    cart.add_item(fries)
    cart.add_item({"kind": "menuItem", "id": 9, "name": "Mint Margarita", "price": "249.995"})
    return cart


class TestEqualitySplit:
    def test_single_total_share(self, filled_cart):
        shares = generate_split_bills(filled_cart.items, SplitBillMode.EQUALITY)
        assert len(shares) == 1
        share = shares[0]
        assert share.split_type is SplitType.EQUALITY
        assert share.label == TOTAL_BILL_LABEL
        assert share.payer_handle == "N/A"
        assert share.amount == to_minor_units(calculate_subtotal(filled_cart.items))

    def test_ignores_discounts(self, cart):
        cart.add_item({"kind": "menuItem", "id": 1, "name": "Biryani", "price": 800, "discount": 50})
        shares = generate_split_bills(cart.items, "equality")
        assert shares[0].amount == 80000

    def test_custom_placeholder(self, filled_cart):
        shares = generate_split_bills(filled_cart.items, "equality", placeholder="guest")
        assert shares[0].payer_handle == "guest"


class TestByItemSplit:
    def test_one_share_per_line(self, filled_cart):
        shares = generate_split_bills(filled_cart.items, SplitBillMode.ITEMS)
        assert [share.label for share in shares] == ["Zinger Burger", "Fries", "Mint Margarita"]
        assert all(share.split_type is SplitType.BY_ITEM for share in shares)
        # Large 650 + jalapenos 30, two of them
        assert shares[0].amount == 136000
        assert shares[1].amount == 20000

    def test_assignments(self, filled_cart):
        shares = generate_split_bills(
            filled_cart.items,
            "items",
            assignments={"7-Large-1": "0300-1234567", "8": "03219876543"},
        )
        assert shares[0].payer_handle == "0300123456"
        assert shares[1].payer_handle == "0321987654"
        assert shares[2].payer_handle == "N/A"


def test_split_conservation(filled_cart):
    """Equality and by-item totals both match the subtotal in cents within rounding."""
    expected = calculate_subtotal(filled_cart.items) * 100
    equality = sum(s.amount for s in generate_split_bills(filled_cart.items, "equality"))
    by_item = sum(s.amount for s in generate_split_bills(filled_cart.items, "items"))
    assert abs(equality - expected) <= 1
    assert abs(by_item - expected) <= 1
    assert abs(equality - by_item) <= 1


def test_empty_cart_equality_share_is_zero():
    shares = generate_split_bills([], "equality")
    assert shares[0].amount == 0
    assert generate_split_bills([], "items") == []


@pytest.mark.parametrize(
    "total, people, expected",
    [
        (1000, 3, [334, 333, 333]),
        (900, 3, [300, 300, 300]),
        (5, 0, [5]),
    ],
)
def test_split_equally(total, people, expected):
    parts = split_equally(total, people)
    assert parts == expected
    assert sum(parts) == total


def test_sanitize_payer_handle():
    assert sanitize_payer_handle("+92 (300) 123-4567") == "9230012345"
    assert sanitize_payer_handle(None) == ""


def test_to_minor_units_rounds_half_up():
    assert to_minor_units(Decimal("249.995")) == 25000
    assert to_minor_units(Decimal("0.004")) == 0


def test_by_item_shares_add_up_to_equality_share(cart):
    """Half-cent lines must not drift away from the single total share."""
    for item_id in range(1, 5):
        cart.add_item({"kind": "menuItem", "id": item_id, "name": f"Sauce {item_id}", "price": "0.005"})

    equality = generate_split_bills(cart.items, "equality")[0].amount
    by_item = [share.amount for share in generate_split_bills(cart.items, "items")]

    assert equality == 2
    assert by_item == [1, 1, 0, 0]
    assert sum(by_item) == equality


def test_allocate_minor_units_largest_remainder():
    parts = allocate_minor_units([Decimal("0.333"), Decimal("0.333"), Decimal("0.334")])
    assert parts == [33, 33, 34]
    assert sum(parts) == 100
    assert allocate_minor_units([]) == []
