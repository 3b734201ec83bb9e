"""Cart module entry point."""

from .catalog import DealEntry, MenuItemEntry, parse_catalog_item
from .models import (
    Branch,
    CartItem,
    Customization,
    CustomizationOption,
    DeliveryDetails,
    Discount,
    ItemSelection,
    Modifier,
    ServiceType,
    SplitBillMode,
    TakeawayDetails,
    TaxAppliedType,
    Variant,
)
from .persistence import (
    CartState,
    InMemoryPersistenceAdapter,
    JsonFilePersistenceAdapter,
    MongoCartStateRepository,
    PersistenceAdapter,
)
from .store import BranchSummary, CartService

__all__ = [
    "Branch",
    "BranchSummary",
    "CartItem",
    "CartService",
    "CartState",
    "Customization",
    "CustomizationOption",
    "DealEntry",
    "DeliveryDetails",
    "Discount",
    "InMemoryPersistenceAdapter",
    "ItemSelection",
    "JsonFilePersistenceAdapter",
    "MenuItemEntry",
    "Modifier",
    "MongoCartStateRepository",
    "PersistenceAdapter",
    "ServiceType",
    "SplitBillMode",
    "TakeawayDetails",
    "TaxAppliedType",
    "Variant",
    "parse_catalog_item",
]
