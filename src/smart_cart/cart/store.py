"""
Cart store.

``CartService`` owns the line items of one customer session together with
the session context (active branch, service type, delivery and takeaway
details, allergens, instructions, split-bill mode). Each session builds its
own instance; nothing is shared at module level.

All operations run synchronously and leave the cart consistent before they
return. Reads may happen from several consumers; writes must be serialised
by the caller.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..errors import CartStateSchemaError
from ..pricing.engine import PriceBreakdown, calculate_subtotal, item_total, price_items
from ..utils.logging import get_logger
from .catalog import CatalogItem, parse_catalog_item
from .models import (
    DEAL_KIND,
    ZERO,
    Branch,
    BranchId,
    CartItem,
    DeliveryDetails,
    ItemSelection,
    ServiceType,
    SplitBillMode,
    TakeawayDetails,
    to_decimal,
    to_quantity,
)
from .persistence import CartState, PersistenceAdapter

logger = get_logger(__name__)


@dataclass(frozen=True)
class BranchSummary:
    branch_id: BranchId
    branch_name: str
    total_quantity: int
    total_value: Decimal


def resolve_unit_price(entry: CatalogItem, selection: ItemSelection) -> Decimal:
    """Unit price of a new line.

    Precedence: the selected variant's price, then the item's own price,
    then the first variation's price, then zero.
    """
    if selection.variant_price is not None:
        return selection.variant_price
    if entry.price is not None and entry.price != "":
        return to_decimal(entry.price)
    if entry.variations:
        return entry.variations[0].price
    return ZERO


class CartService:
    """Mutable cart aggregate for one session."""

    def __init__(self, persistence: Optional[PersistenceAdapter] = None) -> None:
        self._persistence = persistence
        self._items: List[CartItem] = []
        self._cart_branch_id: Optional[BranchId] = None
        self._selected_branch: Optional[Branch] = None
        self._service_type = ServiceType.DINE_IN
        self._delivery_details: Optional[DeliveryDetails] = None
        self._takeaway_details: Optional[TakeawayDetails] = None
        self._special_instructions = ""
        self._selected_allergen_ids: List[Any] = []
        self._split_bill_mode = SplitBillMode.EQUALITY
        self.last_added_item: Optional[CartItem] = None
        self._restore()

    # ── Read-only views ──────────────────────────────────────────

    @property
    def items(self) -> List[CartItem]:
        return list(self._items)

    @property
    def cart_branch_id(self) -> Optional[BranchId]:
        return self._cart_branch_id

    @property
    def selected_branch(self) -> Optional[Branch]:
        return self._selected_branch

    @property
    def service_type(self) -> ServiceType:
        return self._service_type

    @property
    def delivery_details(self) -> Optional[DeliveryDetails]:
        return self._delivery_details

    @property
    def takeaway_details(self) -> Optional[TakeawayDetails]:
        return self._takeaway_details

    @property
    def special_instructions(self) -> str:
        return self._special_instructions

    @property
    def selected_allergen_ids(self) -> List[Any]:
        return list(self._selected_allergen_ids)

    @property
    def split_bill_mode(self) -> SplitBillMode:
        return self._split_bill_mode

    # ── Item mutations ────────────────────────────────────────────

    def add_item(
        self,
        item: Union[CatalogItem, Mapping[str, Any]],
        selection: Optional[ItemSelection] = None,
        variation_key: Optional[str] = None,
    ) -> Optional[CartItem]:
        """
        Add one unit of a catalog item from the active branch.

        Args:
            item: Catalog entry or raw catalog payload carrying a ``kind`` tag
            selection: Variant, modifier and customization choices
            variation_key: Variant name, looked up in the item's variations

        Returns:
            The new or merged CartItem, or None when no branch is active
        """
        branch = self._selected_branch
        if branch is None:
            logger.warning(f"No active branch selected; ignoring add of {_describe(item)}")
            return None

        entry = parse_catalog_item(item)
        selection = selection or ItemSelection()
        if variation_key:
            variant = entry.find_variation(variation_key)
            if variant is not None:
                explicit_price = selection.variant_price
                selection = ItemSelection.for_variant(
                    variant, modifiers=selection.modifiers, customizations=selection.customizations
                )
                if explicit_price is not None:
                    selection.variant_price = explicit_price
            else:
                selection = dataclasses.replace(selection, variant_name=variation_key)

        if self._cart_branch_id is None:
            self._cart_branch_id = branch.id

        candidate = self._build_line(entry, selection, branch)
        existing = self._find(candidate.identity)
        if existing is not None:
            existing.quantity += 1
            result = existing
            logger.debug(f"Merged {result.key}; quantity now {result.quantity}")
        else:
            self._items.append(candidate)
            result = candidate
            logger.debug(f"Added {result.key} at {result.unit_price}")

        self.last_added_item = result
        self._persist()
        return result

    def remove_item(self, key: Any) -> None:
        """Remove every line whose catalog id or composite key equals ``key``.

        Deal lines are addressed by their ``CartItem.catalog_id`` (``deal-<dealId>``);
        a bare number only ever names a menu item.
        """
        remaining = [item for item in self._items if not item.matches(key)]
        if len(remaining) == len(self._items):
            logger.debug(f"No line matches {key}; nothing removed")
            return
        logger.debug(f"Removed {len(self._items) - len(remaining)} line(s) matching {key}")
        self._items = remaining
        self._persist()

    def update_quantity(self, key: Any, quantity: Any) -> None:
        """Set the quantity of matching lines; zero, negative or NaN removes them.

        ``key`` is matched as in ``remove_item``.
        """
        quantity = to_quantity(quantity)
        if quantity <= 0:
            self.remove_item(key)
            return
        changed = False
        for item in self._items:
            if item.matches(key):
                item.quantity = quantity
                changed = True
        if changed:
            self._persist()

    def clear_cart(self) -> None:
        """Empty the cart and reset branch-scoped selections."""
        self._items = []
        self._cart_branch_id = None
        self._selected_allergen_ids = []
        self.last_added_item = None
        self._persist()

    def clear_cart_for_branch(self, branch_id: BranchId) -> None:
        """Remove only ``branch_id``'s lines; everything else is untouched."""
        self._items = [item for item in self._items if str(item.branch_id) != str(branch_id)]
        self._persist()

    # ── Queries ───────────────────────────────────────────────────

    def get_items_for_branch(self, branch_id: BranchId) -> List[CartItem]:
        return [item for item in self._items if str(item.branch_id) == str(branch_id)]

    def get_branch_summary(self) -> Dict[BranchId, BranchSummary]:
        """Quantity and pre-adjustment value per branch, in order of first appearance."""
        grouped: Dict[str, List[CartItem]] = {}
        for item in self._items:
            grouped.setdefault(str(item.branch_id), []).append(item)

        summary: Dict[BranchId, BranchSummary] = {}
        for lines in grouped.values():
            first = lines[0]
            summary[first.branch_id] = BranchSummary(
                branch_id=first.branch_id,
                branch_name=first.branch_name,
                total_quantity=sum(line.quantity for line in lines),
                total_value=sum((item_total(line) for line in lines), ZERO),
            )
        return summary

    def get_unique_branch_count(self) -> int:
        return len({str(item.branch_id) for item in self._items})

    def get_cart_count(self) -> int:
        return sum(item.quantity for item in self._items)

    def get_cart_total(self) -> Decimal:
        return calculate_subtotal(self._items)

    def price_branch(
        self,
        branch: Optional[Branch] = None,
        fee_responsible: Optional[bool] = None,
        as_of: Optional[date] = None,
    ) -> PriceBreakdown:
        """Price ``branch``'s lines (default: the selected branch) with the cart's service type.

        Service and delivery charges apply only to the fee-responsible branch,
        which unless stated otherwise is the branch being viewed.
        """
        branch = branch or self._selected_branch
        if fee_responsible is None:
            fee_responsible = self._is_selected(branch)
        items = self.get_items_for_branch(branch.id) if branch is not None else []
        return price_items(items, branch, self._service_type, fee_responsible, as_of=as_of)

    # ── Session context ───────────────────────────────────────────

    def set_selected_branch(self, branch: Union[Branch, Mapping[str, Any], None]) -> None:
        if branch is not None and not isinstance(branch, Branch):
            branch = Branch.from_dict(branch)
        self._selected_branch = branch
        self._persist()

    def set_service_type(self, service_type: Union[ServiceType, str]) -> None:
        self._service_type = ServiceType.parse(service_type)
        self._persist()

    def set_delivery_details(self, details: Optional[DeliveryDetails]) -> None:
        self._delivery_details = details
        self._persist()

    def set_takeaway_details(self, details: Optional[TakeawayDetails]) -> None:
        self._takeaway_details = details
        self._persist()

    def set_special_instructions(self, text: Optional[str]) -> None:
        self._special_instructions = text or ""
        self._persist()

    def set_selected_allergens(self, allergen_ids: Iterable[Any]) -> None:
        self._selected_allergen_ids = list(dict.fromkeys(allergen_ids))
        self._persist()

    def toggle_allergen(self, allergen_id: Any) -> None:
        if allergen_id in self._selected_allergen_ids:
            self._selected_allergen_ids.remove(allergen_id)
        else:
            self._selected_allergen_ids.append(allergen_id)
        self._persist()

    def set_split_bill_mode(self, mode: Union[SplitBillMode, str]) -> None:
        self._split_bill_mode = SplitBillMode.parse(mode)
        self._persist()

    # ── Persistence ───────────────────────────────────────────────

    def to_state(self) -> CartState:
        return CartState(
            items=[dataclasses.replace(item) for item in self._items],
            cart_branch_id=self._cart_branch_id,
            selected_branch=self._selected_branch,
            service_type=self._service_type,
            delivery_details=self._delivery_details,
            takeaway_details=self._takeaway_details,
            special_instructions=self._special_instructions,
            selected_allergen_ids=list(self._selected_allergen_ids),
            split_bill_mode=self._split_bill_mode,
        )

    def _persist(self) -> None:
        if self._persistence is not None:
            self._persistence.save(self.to_state())

    def _restore(self) -> None:
        if self._persistence is None:
            return
        try:
            state = self._persistence.load()
        except CartStateSchemaError as exc:
            logger.warning(f"Discarding persisted cart state: {exc}")
            return
        if state is None:
            return
        self._items = list(state.items)
        self._cart_branch_id = state.cart_branch_id
        self._selected_branch = state.selected_branch
        self._service_type = state.service_type
        self._delivery_details = state.delivery_details
        self._takeaway_details = state.takeaway_details
        self._special_instructions = state.special_instructions
        self._selected_allergen_ids = list(state.selected_allergen_ids)
        self._split_bill_mode = state.split_bill_mode
        logger.debug(f"Restored cart with {len(self._items)} line(s)")

    # ── Helpers ───────────────────────────────────────────────────

    def _find(self, identity) -> Optional[CartItem]:
        for item in self._items:
            if item.identity == identity:
                return item
        return None

    def _is_selected(self, branch: Optional[Branch]) -> bool:
        selected = self._selected_branch
        return branch is not None and selected is not None and str(branch.id) == str(selected.id)

    @staticmethod
    def _build_line(entry: CatalogItem, selection: ItemSelection, branch: Branch) -> CartItem:
        is_deal = entry.kind == DEAL_KIND
        return CartItem(
            catalog_id=entry.catalog_id,
            kind=entry.kind,
            name=entry.name,
            description=entry.description,
            image=entry.image,
            unit_price=resolve_unit_price(entry, selection),
            quantity=1,
            variant_id=selection.variant_id,
            variant_name=selection.variant_name,
            variant_price=selection.variant_price,
            selected_modifiers=dict(selection.modifiers),
            selected_customizations=dict(selection.customizations),
            modifiers=[] if is_deal else list(entry.modifiers),
            customizations=[] if is_deal else list(entry.customizations),
            discount=entry.discount,
            max_allowed_amount=ZERO if is_deal else entry.max_allowed_amount,
            branch_id=branch.id,
            branch_name=branch.name,
            menu_items=list(entry.menu_items) if is_deal else [],
            sub_menu_items=list(entry.sub_menu_items) if is_deal else [],
        )


def _describe(item: Any) -> str:
    if isinstance(item, Mapping):
        return str(item.get("name") or item.get("id") or item.get("dealId"))
    return str(getattr(item, "name", item))
