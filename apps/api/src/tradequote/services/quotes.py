from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from random import Random

CENTS = Decimal("0.01")
DEFAULT_TERMS = "Payment due within 30 days"


class QuoteStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: Decimal
    rate: Decimal

    @property
    def amount(self) -> Decimal:
        return line_item_amount(self.quantity, self.rate)

    def to_json(self) -> dict[str, object]:
        return {
            "description": self.description,
            "quantity": str(self.quantity),
            "rate": str(self.rate),
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class QuoteTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def line_item_amount(quantity: Decimal | int | float, rate: Decimal | int | float) -> Decimal:
    return _to_cents(Decimal(str(quantity)) * Decimal(str(rate)))


def compute_quote_totals(
    line_items: Iterable[LineItem],
    tax_rate_percent: Decimal | int | float,
) -> QuoteTotals:
    rate = Decimal(str(tax_rate_percent))
    if rate < 0:
        raise ValueError("tax_rate must be non-negative")

    subtotal = sum((item.amount for item in line_items), Decimal("0"))
    tax = _to_cents(subtotal * rate / Decimal("100"))
    return QuoteTotals(subtotal=_to_cents(subtotal), tax=tax, total=_to_cents(subtotal) + tax)


def generate_quote_number(now: datetime, rng: Random | None = None) -> str:
    """Quote numbers look like Q202610-042: year, month, random suffix."""
    suffix = (rng or Random()).randrange(1000)
    return f"Q{now.year}{now.month:02d}-{suffix:03d}"


def default_valid_until(today: date, valid_days: int) -> date:
    return today + timedelta(days=valid_days)
