# Overview: Service-layer operations for the order status lifecycle.

"""
StockPilot Order Lifecycle Service

================================================================================
STATE MACHINE
================================================================================

    pending -> processing -> shipped -> delivered -> completed
        \\           \\            \\           \\
         +-----------+------------+-----------+--> cancelled

    pending:    Created; stock already deducted
    processing: Being picked / packed (optional step)
    shipped:    Handed to carrier
    delivered:  Received by customer
    completed:  TERMINAL
    cancelled:  TERMINAL

RULES:
1. Any non-terminal status may be cancelled
2. Steps can only move forward; pending -> shipped may skip processing
3. completed and cancelled are terminal
4. A status change touches status and updated_at only. Financials and lines
   are fixed at creation.
5. Cancelling does NOT return stock to inventory; restocking is a separate
   stock adjustment.
================================================================================
"""

from __future__ import annotations

from flask import current_app

from ..errors import InvalidTransition, NotFound, ValidationError
from ..extensions import db
from ..models import Order, ORDER_STATUSES
from stockpilot.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


TERMINAL_STATUSES = frozenset({"completed", "cancelled"})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"processing", "shipped", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}


def validate_status(status: str) -> None:
    """
    Raises:
        ValidationError: If status is not one of ORDER_STATUSES
    """
    if status not in ORDER_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}",
            details={"status": status},
        )


def can_transition(from_status: str, to_status: str) -> bool:
    validate_status(from_status)
    validate_status(to_status)
    return to_status in ALLOWED_TRANSITIONS[from_status]


def allowed_next_statuses(status: str) -> list[str]:
    validate_status(status)
    return [s for s in ORDER_STATUSES if s in ALLOWED_TRANSITIONS[status]]


def _transition_message(current: str, requested: str) -> str:
    if current in TERMINAL_STATUSES:
        return f"Order is already {current} and cannot be changed."
    return f"Order cannot be marked as {requested} from '{current}' status."


def update_order_status(order_id: int, new_status: str) -> Order:
    """
    Move an order to new_status.

    Raises:
        ValidationError: unknown status
        NotFound: no such order
        InvalidTransition: the move is not allowed from the current status
    """
    validate_status(new_status)

    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFound("Order not found.", details={"order_id": order_id})

        current = order.status
        if not can_transition(current, new_status):
            raise InvalidTransition(current, new_status, _transition_message(current, new_status))

        order.status = new_status
        order.updated_at = utcnow()
        db.session.commit()

        current_app.logger.info(
            "Order %s status %s -> %s", order.order_number, current, new_status
        )
        return order

    return run_with_retry(_op)
