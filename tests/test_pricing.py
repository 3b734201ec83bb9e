"""Tests for the pricing engine."""

from datetime import date
from decimal import Decimal

import pytest

from smart_cart.cart.models import Branch, CartItem, Customization, CustomizationOption, Discount, Modifier, TaxAppliedType
from smart_cart.errors import MissingBranchConfigError
from smart_cart.pricing.engine import (
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


def make_line(price="1000", quantity=1, discount=None, max_allowed="0", branch_id=1, **kwargs):
    return CartItem(
        catalog_id=kwargs.pop("catalog_id", "1"),
        name=kwargs.pop("name", "Item"),
        unit_price=Decimal(price),
        branch_id=branch_id,
        quantity=quantity,
        discount=discount,
        max_allowed_amount=Decimal(max_allowed),
        **kwargs,
    )


def make_branch(**kwargs):
    defaults = dict(id=1, name="Main", currency="PKR")
    defaults.update(kwargs)
    return Branch(**defaults)


class TestLineTotals:
    """Subtotal with modifiers and customization options."""

    def test_modifiers_and_customizations_included(self):
        line = make_line(
            price="500",
            quantity=2,
            modifiers=[Modifier(id=1, name="Cheese", price=Decimal("50"))],
            selected_modifiers={"1": 3},
            customizations=[
                Customization(id=10, name="Sauce", options=(CustomizationOption(id=102, name="Peri", price=Decimal("25")),))
            ],
            selected_customizations={"10": "102"},
        )
        # (500 + 3 x 50 + 25) x 2
        assert item_total(line) == Decimal("1350")

    def test_unknown_modifier_ignored(self):
        line = make_line(price="100", selected_modifiers={"999": 1})
        assert item_total(line) == Decimal("100")

    def test_subtotal_sums_lines(self):
        lines = [make_line(price="10.25", quantity=3), make_line(price="4.10")]
        assert calculate_subtotal(lines) == Decimal("34.85")

    def test_empty_subtotal_is_zero(self):
        assert calculate_subtotal([]) == Decimal("0")


class TestDiscounts:
    """Per-item and branch-level discount caps."""

    def test_item_cap_applies(self):
        """price 1000, 50% off, cap 300 per unit gives 300 not 500."""
        line = make_line(discount=Decimal("50"), max_allowed="300")
        assert item_discount(line) == Decimal("300")

    def test_item_cap_scales_with_quantity(self):
        line = make_line(quantity=2, discount=Decimal("50"), max_allowed="300")
        assert item_discount(line) == Decimal("600")

    def test_uncapped_when_cap_zero(self):
        line = make_line(discount=Decimal("50"))
        assert item_discount(line) == Decimal("500")

    def test_structured_discount(self):
        line = make_line(discount=Discount(value=Decimal("10"), id=1, name="Promo"))
        assert item_discount(line) == Decimal("100")

    def test_mapping_discount(self):
        line = make_line(discount={"value": 20})
        assert item_discount(line) == Decimal("200")

    def test_no_discount(self):
        assert item_discount(make_line()) == Decimal("0")

    def test_expired_discount_ignored_with_as_of(self):
        discount = Discount(value=Decimal("10"), end_date=date(2024, 1, 31))
        line = make_line(discount=discount)
        assert item_discount(line, as_of=date(2024, 2, 1)) == Decimal("0")
        assert item_discount(line, as_of=date(2024, 1, 31)) == Decimal("100")
        assert item_discount(line) == Decimal("100")

    def test_branch_cap_reports_both_values(self):
        """Two capped items (600 calculated) under a 400 branch cap apply 400."""
        lines = [
            make_line(discount=Decimal("50"), max_allowed="300", catalog_id="1"),
            make_line(discount=Decimal("50"), max_allowed="300", catalog_id="2"),
        ]
        branch = make_branch(max_discount_amount=Decimal("400"))
        breakdown = price_items(lines, branch, "takeaway")
        assert breakdown.calculated_discount == Decimal("600")
        assert breakdown.applied_discount == Decimal("400")
        assert breakdown.discount_capped

    def test_branch_cap_zero_is_unlimited(self):
        assert apply_discount_cap(Decimal("900"), make_branch()) == Decimal("900")

    def test_calculate_discount_sums(self):
        lines = [make_line(discount=Decimal("10")), make_line(price="200", discount=Decimal("5"))]
        assert calculate_discount(lines) == Decimal("110")


class TestFees:
    """Service charge, delivery charge and tax."""

    def test_service_charge_dine_in_only(self):
        branch = make_branch(service_charge_percentage=Decimal("10"))
        assert calculate_service_charge(Decimal("1000"), Decimal("100"), branch, "dine-in") == Decimal("90")
        assert calculate_service_charge(Decimal("1000"), Decimal("100"), branch, "delivery") == Decimal("0")
        assert calculate_service_charge(Decimal("1000"), Decimal("100"), branch, "reservation") == Decimal("0")

    def test_service_charge_only_for_fee_responsible_branch(self):
        branch = make_branch(service_charge_percentage=Decimal("10"))
        assert calculate_service_charge(
            Decimal("1000"), Decimal("0"), branch, "dine-in", fee_responsible=False
        ) == Decimal("0")

    def test_delivery_charge_delivery_only(self):
        branch = make_branch(delivery_charge=Decimal("150"))
        assert calculate_delivery_charge(branch, "delivery") == Decimal("150")
        assert calculate_delivery_charge(branch, "takeaway") == Decimal("0")
        assert calculate_delivery_charge(branch, "delivery", fee_responsible=False) == Decimal("0")

    def test_tax_skipped_without_percentage(self):
        assert calculate_tax(Decimal("1000"), Decimal("100"), make_branch()) == Decimal("0")

    @pytest.mark.parametrize(
        "tax_type, expected_tax, expected_total",
        [
            (TaxAppliedType.ON_TOTAL, Decimal("100"), Decimal("1000")),
            (TaxAppliedType.ON_DISCOUNTED_TOTAL, Decimal("90"), Decimal("990")),
        ],
    )
    def test_tax_basis_switch(self, tax_type, expected_tax, expected_total):
        """subtotal 1000, discount 100, tax 10%."""
        branch = make_branch(tax_percentage=Decimal("10"), tax_applied_type=tax_type)
        lines = [make_line(discount=Decimal("10"))]
        breakdown = price_items(lines, branch, "takeaway")
        assert breakdown.subtotal == Decimal("1000")
        assert breakdown.applied_discount == Decimal("100")
        assert breakdown.tax == expected_tax
        assert breakdown.grand_total == expected_total

    def test_unknown_tax_type_uses_discounted_total(self):
        branch = Branch.from_dict({"branchId": 1, "taxPercentage": 10, "taxAppliedType": "Whatever"})
        assert calculate_tax(Decimal("1000"), Decimal("100"), branch) == Decimal("90")


class TestPriceItems:
    """Full breakdowns."""

    def test_dine_in_breakdown(self):
        branch = make_branch(
            service_charge_percentage=Decimal("5"),
            tax_percentage=Decimal("16"),
            delivery_charge=Decimal("150"),
        )
        lines = [make_line(price="1000", discount=Decimal("10"))]
        breakdown = price_items(lines, branch, "dine-in")
        assert breakdown.service_charge == Decimal("45")
        assert breakdown.delivery_charge == Decimal("0")
        assert breakdown.tax == Decimal("144")
        assert breakdown.grand_total == Decimal("1000") + Decimal("45") + Decimal("144") - Decimal("100")
        assert breakdown.currency == "PKR"

    def test_delivery_breakdown_and_minimum(self):
        branch = make_branch(delivery_charge=Decimal("150"), min_delivery_amount=Decimal("1500"))
        breakdown = price_items([make_line(price="1000")], branch, "delivery")
        assert breakdown.delivery_charge == Decimal("150")
        assert breakdown.grand_total == Decimal("1150")
        assert breakdown.meets_minimum_delivery is False

    def test_no_intermediate_rounding(self):
        branch = make_branch(tax_percentage=Decimal("7.5"), tax_applied_type=TaxAppliedType.ON_TOTAL)
        breakdown = price_items([make_line(price="10.01")], branch, "takeaway")
        assert breakdown.tax == Decimal("0.75075")
        assert breakdown.for_display()["tax"] == Decimal("0.75")

    def test_missing_branch_is_typed_error(self):
        with pytest.raises(MissingBranchConfigError):
            price_items([make_line()], None, "dine-in")

    def test_missing_branch_error_is_value_error(self):
        with pytest.raises(ValueError):
            price_items([], None, "takeaway")

    def test_to_dict(self):
        breakdown = price_items([make_line(price="12.50")], make_branch(), "takeaway")
        data = breakdown.to_dict()
        assert data["subtotal"] == "12.50"
        assert data["discountCapped"] is False


class TestCartServicePricing:
    def test_price_branch_uses_selected_branch(self, cart, burger, fries, branch_two):
        cart.add_item(burger)
        cart.set_selected_branch(branch_two)
        cart.add_item(fries)
        assert cart.price_branch().subtotal == Decimal("200")

    def test_price_branch_without_branch_raises(self, cart, burger):
        cart.add_item(burger)
        cart.set_selected_branch(None)
        with pytest.raises(MissingBranchConfigError):
            cart.price_branch()

    def test_price_branch_scopes_items(self, cart, burger, fries, branch_one, branch_two):
        cart.add_item(burger)
        cart.set_selected_branch(branch_two)
        cart.add_item(fries)
        breakdown = cart.price_branch(branch_one, fee_responsible=True)
        assert breakdown.subtotal == Decimal("500")
        # dine-in default: 5% service charge, 16% tax on discounted total
        assert breakdown.service_charge == Decimal("25")
        assert breakdown.tax == Decimal("80")

    def test_branch_not_viewed_carries_no_fees(self, cart, burger, branch_one, branch_two):
        cart.add_item(burger)
        cart.set_selected_branch(branch_two)
        breakdown = cart.price_branch(branch_one)
        assert breakdown.subtotal == Decimal("500")
        assert breakdown.service_charge == Decimal("0")
        assert breakdown.tax == Decimal("80")

    def test_viewed_branch_is_fee_responsible(self, cart, burger):
        cart.add_item(burger)
        assert cart.price_branch().service_charge == Decimal("25")

    def test_delivery_charge_only_for_viewed_branch(self, cart, fries, branch_one, branch_two):
        cart.set_service_type("delivery")
        cart.add_item(fries)
        cart.set_selected_branch(branch_two)
        assert cart.price_branch(branch_one).delivery_charge == Decimal("0")
        cart.set_selected_branch(branch_one)
        assert cart.price_branch().delivery_charge == Decimal("150")


def test_format_money():
    assert format_money(Decimal("1250.505"), "PKR") == "PKR 1250.51"
    assert format_money(Decimal("3")) == "3.00"
