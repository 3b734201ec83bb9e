"""Typed errors raised by the cart and pricing engine.

Not-found conditions (removing an unknown line, updating a missing key) are
never errors. These exceptions only cover malformed required inputs.
"""


class SmartCartError(ValueError):
    """Base class for all Smart Cart errors."""


class MissingBranchConfigError(SmartCartError):
    """Raised when pricing is requested without a branch fee configuration."""

    def __init__(self, message: str = "Branch fee configuration is required to price a cart") -> None:
        super().__init__(message)


class InvalidCatalogItemError(SmartCartError):
    """Raised when catalog data entering the cart has no usable ``kind`` tag."""


class CartStateSchemaError(SmartCartError):
    """Raised when persisted cart state does not match a known schema version."""
