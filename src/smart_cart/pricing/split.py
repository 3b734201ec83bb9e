"""Split bill generation.

Shares are expressed in the smallest currency unit (cents/paisas) and are
taken from the pre-discount, pre-tax value of the line items.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..cart.models import HUNDRED, ZERO, CartItem, SplitBillMode
from ..utils.logging import get_logger
from .engine import calculate_subtotal, item_total

logger = get_logger(__name__)

DEFAULT_PAYER_PLACEHOLDER = "N/A"
TOTAL_BILL_LABEL = "Total Bill"
MAX_PAYER_HANDLE_LENGTH = 10


class SplitType(IntEnum):
    EQUALITY = 1
    BY_ITEM = 2


@dataclass(frozen=True)
class SplitBillShare:
    split_type: SplitType
    amount: int
    payer_handle: str
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "splitType": int(self.split_type),
            "amount": self.amount,
            "payerHandle": self.payer_handle,
            "label": self.label,
        }


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer cents, rounding half-up."""
    return int((amount * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sanitize_payer_handle(value: Optional[str]) -> str:
    """Keep digits only, at most ten of them (mobile number input)."""
    return re.sub(r"\D", "", value or "")[:MAX_PAYER_HANDLE_LENGTH]


def split_equally(total_cents: int, people: int) -> List[int]:
    """Divide ``total_cents`` between ``people`` so the parts add up exactly.

    Leftover cents go to the first payers. ``people`` below 1 is treated as 1.
    """
    people = max(1, int(people))
    base, remainder = divmod(int(total_cents), people)
    return [base + 1 if i < remainder else base for i in range(people)]


def allocate_minor_units(amounts: List[Decimal]) -> List[int]:
    """Convert several amounts to cents so the parts add up to their rounded sum.

    Each amount is floored, then the cents still owed go to the amounts
    with the largest remainders (earlier ones first on ties).
    """
    target = to_minor_units(sum(amounts, ZERO))
    exact = [amount * HUNDRED for amount in amounts]
    parts = [int(value.to_integral_value(rounding=ROUND_FLOOR)) for value in exact]
    owed = target - sum(parts)
    by_remainder = sorted(range(len(exact)), key=lambda i: exact[i] - parts[i], reverse=True)
    for i in by_remainder[:owed]:
        parts[i] += 1
    return parts


def _assigned_payer(item: CartItem, assignments: Mapping[str, str], placeholder: str) -> str:
    handle = sanitize_payer_handle(assignments.get(item.key) or assignments.get(item.catalog_id))
    return handle or placeholder


def generate_split_bills(
    items: Iterable[CartItem],
    mode: Union[SplitBillMode, str],
    assignments: Optional[Mapping[str, str]] = None,
    placeholder: str = DEFAULT_PAYER_PLACEHOLDER,
) -> List[SplitBillShare]:
    """
    Turn branch-scoped line items into payment shares.

    Args:
        items: Line items of the branch being paid for
        mode: ``equality`` for one total share, ``items`` for one share per line
        assignments: Payer handle per line key or catalog id (by-item mode)
        placeholder: Payer handle used when nobody is assigned

    Returns:
        List of SplitBillShare with amounts in the smallest currency unit
    """
    items = list(items)
    mode = SplitBillMode.parse(mode)
    assignments = assignments or {}

    if mode is SplitBillMode.EQUALITY:
        shares = [
            SplitBillShare(
                split_type=SplitType.EQUALITY,
                amount=to_minor_units(calculate_subtotal(items)),
                payer_handle=placeholder,
                label=TOTAL_BILL_LABEL,
            )
        ]
    else:
        amounts = allocate_minor_units([item_total(item) for item in items])
        shares = [
            SplitBillShare(
                split_type=SplitType.BY_ITEM,
                amount=amount,
                payer_handle=_assigned_payer(item, assignments, placeholder),
                label=item.name,
            )
            for item, amount in zip(items, amounts)
        ]

    logger.debug(f"Generated {len(shares)} {mode.value} split share(s)")
    return shares
