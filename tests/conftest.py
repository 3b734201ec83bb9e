"""
Pytest configuration and fixtures for the Smart Cart tests.
"""

import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Add src to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from smart_cart.cart.models import Branch, TaxAppliedType  # noqa: E402
from smart_cart.cart.store import CartService  # noqa: E402


@pytest.fixture
def branch_one():
    """Dine-in branch with service charge and tax on the discounted total."""
    return Branch(
        id=1,
        name="Gulberg",
        currency="PKR",
        delivery_charge=Decimal("150"),
        service_charge_percentage=Decimal("5"),
        tax_percentage=Decimal("16"),
        tax_applied_type=TaxAppliedType.ON_DISCOUNTED_TOTAL,
        max_discount_amount=Decimal("0"),
    )


@pytest.fixture
def branch_two():
    return Branch(id=2, name="DHA", currency="PKR", delivery_charge=Decimal("200"))


@pytest.fixture
def burger():
    """Menu item payload with variations, modifiers and a customization group."""
    return {
        "kind": "menuItem",
        "id": 7,
        "name": "Zinger Burger",
        "description": "Crispy fillet",
        "price": "500",
        "image": "zinger.png",
        "variations": [
            {"id": 71, "name": "Regular", "price": "500"},
            {"id": 72, "name": "Large", "price": "650", "discountedPrice": "600"},
        ],
        "modifiers": [
            {"id": 1, "name": "Cheese", "price": "50"},
            {"id": 2, "name": "Jalapenos", "price": "30"},
        ],
        "customizations": [
            {
                "id": 10,
                "name": "Sauce",
                "options": [
                    {"id": 101, "name": "Garlic", "price": "0"},
                    {"id": 102, "name": "Peri Peri", "price": "25"},
                ],
            }
        ],
    }


@pytest.fixture
def fries():
    return {"kind": "menuItem", "id": 8, "name": "Fries", "price": 200}


@pytest.fixture
def family_deal():
    return {
        "kind": "deal",
        "dealId": 7,
        "name": "Family Deal",
        "price": "2500",
        "discount": {"id": 3, "name": "Weekend", "value": 10, "endDate": "2030-12-31"},
        "menuItems": [{"menuItemId": 7, "quantity": 4}],
        "subMenuItems": [{"subMenuItemId": 55, "quantity": 1}],
    }


@pytest.fixture
def cart(branch_one):
    """Fresh cart with branch one active."""
    service = CartService()
    service.set_selected_branch(branch_one)
    return service
