from dataclasses import dataclass
from typing import Iterable, Optional

from app.core.errors import ValidationError
from app.models.requirement_item import RequirementItem


@dataclass(frozen=True)
class PriceSummary:
    total_price: float
    currency: str


def calculate_total(items: Iterable[RequirementItem], default_currency: str = "USD") -> PriceSummary:
    """Sum quantity * unit price over the items.

    Items without a price, or priced at exactly zero, are skipped. The
    currency of the last item with a non-zero price wins; with no such item
    the default currency is reported.
    """
    total = 0.0
    currency = default_currency
    for item in items:
        # precio 0 no aporta al total ni decide la moneda
        if item.estimated_price is None or item.estimated_price == 0:
            continue
        total += item.quantity * item.estimated_price
        currency = item.currency or currency
    return PriceSummary(total_price=round(total, 2), currency=currency)


def ensure_single_currency(
    items: Iterable[RequirementItem],
    currency: str,
    ignore_item_id: Optional[int] = None,
) -> None:
    for item in items:
        if item.id == ignore_item_id:
            continue
        if item.currency and item.currency != currency:
            raise ValidationError(
                f"Item currency {currency} does not match requirement currency {item.currency}"
            )
