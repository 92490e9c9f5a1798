# Overview: Pure order pricing; no database access.

"""
StockPilot Pricing Invariants (authoritative)

All amounts are integer cents.

- subtotal        = SUM(quantity * unit_price)
- discount        = percentage: subtotal * value / 100 (nearest cent, half-up)
                    fixed:      value
                    none:       0
                    then clamped to [0, subtotal]
- total           = subtotal - discount + shipping_fee
- cost_of_goods   = SUM(quantity * unit_cost)  (unit cost frozen on the line)
- profit          = total - cost_of_goods

The clamp silently corrects an oversized or negative discount instead of
rejecting the order.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"


@dataclass(frozen=True)
class PricingLine:
    quantity: int
    unit_price_cents: int
    cost_cents: int = 0


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    discount_amount_cents: int
    shipping_fee_cents: int
    total_amount_cents: int
    cost_of_goods_sold_cents: int
    profit_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "shipping_fee_cents": self.shipping_fee_cents,
            "total_amount_cents": self.total_amount_cents,
            "cost_of_goods_sold_cents": self.cost_of_goods_sold_cents,
            "profit_cents": self.profit_cents,
        }


def _to_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def line_total_cents(quantity: int, unit_price_cents: int) -> int:
    return quantity * unit_price_cents


def compute_discount_cents(
    subtotal_cents: int,
    discount_type: str | None,
    discount_value,
) -> int:
    if not discount_type or discount_value is None:
        return 0

    value = Decimal(str(discount_value))
    if discount_type == DISCOUNT_PERCENTAGE:
        amount = _to_cents(Decimal(subtotal_cents) * value / Decimal(100))
    elif discount_type == DISCOUNT_FIXED:
        amount = _to_cents(value)
    else:
        amount = 0

    return max(0, min(amount, subtotal_cents))


def compute_order_totals(
    lines: Iterable[PricingLine],
    discount_type: str | None = None,
    discount_value=None,
    shipping_fee_cents: int | None = 0,
) -> OrderTotals:
    lines = list(lines)

    subtotal = sum(line_total_cents(l.quantity, l.unit_price_cents) for l in lines)
    cogs = sum(l.quantity * (l.cost_cents or 0) for l in lines)
    discount = compute_discount_cents(subtotal, discount_type, discount_value)
    shipping = shipping_fee_cents or 0

    total = subtotal - discount + shipping

    return OrderTotals(
        subtotal_cents=subtotal,
        discount_amount_cents=discount,
        shipping_fee_cents=shipping,
        total_amount_cents=total,
        cost_of_goods_sold_cents=cogs,
        profit_cents=total - cogs,
    )
