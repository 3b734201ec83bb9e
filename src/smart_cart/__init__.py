"""
Smart Cart - Cart & Pricing Engine

An in-memory cart for a multi-branch restaurant ordering front end. Holds the
customer's selections, prices them against branch fee configuration
(discount, service charge, delivery charge, tax) and produces split-bill
shares and order submission payloads.
"""

__version__ = "0.1.0"

from . import cart
from . import orders
from . import pricing
from . import utils

__all__ = ["cart", "orders", "pricing", "utils"]
