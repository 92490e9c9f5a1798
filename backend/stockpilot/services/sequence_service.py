# Overview: Service-layer operations for order numbering; atomic per-day counter.

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import TransactionFailure
from ..extensions import db
from ..models import Order, OrderSequence
from stockpilot.time_utils import utcnow


SEQUENCE_PAD = 4


def order_number_prefix(on_date: date, prefix: str | None = None) -> str:
    if prefix is None:
        prefix = current_app.config.get("ORDER_NUMBER_PREFIX", "ORD")
    return f"{prefix}-{on_date:%Y%m%d}-"


def format_order_number(number_prefix: str, sequence: int) -> str:
    return f"{number_prefix}{sequence:0{SEQUENCE_PAD}d}"


def parse_sequence(order_number: str) -> int | None:
    """Trailing sequence of an order number, or None if it has none."""
    tail = (order_number or "").rsplit("-", 1)[-1]
    return int(tail) if tail.isdigit() else None


def _highest_existing_sequence(number_prefix: str) -> int:
    # Numbers past 9999 grow a digit, so compare numerically, not lexically.
    numbers = (
        db.session.query(Order.order_number)
        .filter(Order.order_number.like(f"{number_prefix}%"))
        .all()
    )
    sequences = [parse_sequence(n) for (n,) in numbers]
    return max((s for s in sequences if s is not None), default=0)


def _increment_stmt(sequence_date: str):
    return (
        update(OrderSequence)
        .where(OrderSequence.sequence_date == sequence_date)
        .values(next_number=OrderSequence.next_number + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )


def _read_allocated(sequence_date: str) -> int:
    current = (
        db.session.query(OrderSequence.next_number)
        .filter_by(sequence_date=sequence_date)
        .scalar()
    )
    return current - 1


def next_order_number(on_date: date | None = None, *, prefix: str | None = None) -> str:
    """
    Atomically allocate the next order number for a day.

    Runs inside the caller's transaction and never commits: the counter
    increment becomes durable together with the order insert, or not at all.

    The counter row for a day is created on first use, seeded from the
    highest order number already stored for that day.
    """
    on_date = on_date or utcnow().date()
    sequence_date = f"{on_date:%Y%m%d}"
    number_prefix = order_number_prefix(on_date, prefix)

    result = db.session.execute(_increment_stmt(sequence_date))
    if result.rowcount:
        return format_order_number(number_prefix, _read_allocated(sequence_date))

    allocated = _highest_existing_sequence(number_prefix) + 1
    try:
        with db.session.begin_nested():
            db.session.add(OrderSequence(sequence_date=sequence_date, next_number=allocated + 1))
        return format_order_number(number_prefix, allocated)
    except IntegrityError:
        # Another transaction created the day's row first; use it.
        result = db.session.execute(_increment_stmt(sequence_date))
        if not result.rowcount:
            raise TransactionFailure(
                "Could not allocate an order number. Please retry.",
                details={"sequence_date": sequence_date},
            )
        return format_order_number(number_prefix, _read_allocated(sequence_date))
