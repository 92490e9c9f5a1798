# Overview: Service-layer operations for the inventory movement ledger.

from __future__ import annotations

from datetime import datetime

from ..errors import ValidationError
from ..extensions import db
from ..models import InventoryMovement, Product, ProductBatch, MOVEMENT_TYPES
from stockpilot.time_utils import utcnow
"""
StockPilot Movement Ledger Invariants (authoritative)

- Append-only: rows are never updated or deleted.
- One row per stock-affecting event, written in the same DB transaction as
  the Product.stock change it records.
- quantity is signed; stock_after = stock_before + quantity.
- stock_before/stock_after are the product's stock immediately around the
  change, as returned by the atomic stock update.
- Sales are negative, stock-in positive, adjustments carry their own sign.
- product_name / user_name are snapshots at movement time.
- batch_id / batch_expiry_date are set on stock-in movements only.
"""

_SIGN_RULES = {
    "sale": lambda q: q < 0,
    "stock-in": lambda q: q > 0,
    "adjustment-add": lambda q: q > 0,
    "adjustment-remove": lambda q: q < 0,
}


def build_movement(
    *,
    product: Product,
    movement_type: str,
    quantity: int,
    stock_before: int,
    actor,
    notes: str | None = None,
    batch: ProductBatch | None = None,
    related_order_id: int | None = None,
    movement_date: datetime | None = None,
) -> InventoryMovement:
    """
    Build a movement row without adding it to the session.

    Order creation collects these while it walks the lines and only appends
    them once every line has passed its stock check.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type '{movement_type}'")
    if not _SIGN_RULES[movement_type](quantity):
        raise ValidationError(f"quantity {quantity} has the wrong sign for a '{movement_type}' movement")
    # Lot draws of sales live on order_line_batches; only receipts name a lot.
    if batch is not None and movement_type != "stock-in":
        raise ValidationError(f"only stock-in movements carry a batch, not '{movement_type}'")

    stock_after = stock_before + quantity
    if stock_after < 0:
        raise ValidationError("movement would leave stock negative")

    return InventoryMovement(
        product_id=product.id,
        product_name=product.name,
        type=movement_type,
        quantity=quantity,
        movement_date=movement_date or utcnow(),
        user_id=actor.id,
        user_name=actor.name,
        stock_before=stock_before,
        stock_after=stock_after,
        batch_id=batch.id if batch is not None else None,
        batch_expiry_date=batch.expiry_date if batch is not None else None,
        related_order_id=related_order_id,
        notes=notes[:500] if notes else notes,
    )


def append_movement(movement: InventoryMovement) -> InventoryMovement:
    """
    Append a movement to the ledger.

    - No domain logic here.
    - No deletes/updates of existing movements.
    """
    if movement.id is not None:
        raise ValidationError("movement is already recorded")
    db.session.add(movement)
    db.session.flush()  # ensures movement.id is assigned without committing
    return movement


def append_movements(movements: list[InventoryMovement]) -> list[InventoryMovement]:
    for movement in movements:
        if movement.id is not None:
            raise ValidationError("movement is already recorded")
        db.session.add(movement)
    db.session.flush()
    return movements
