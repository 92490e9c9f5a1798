# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/stockpilot/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time

from flask import current_app
from sqlalchemy import update

from ..errors import InvalidAdjustment, NotFound, TransactionFailure, ValidationError
from ..extensions import db
from ..models import Product, ProductBatch, InventoryMovement, MOVEMENT_TYPES
from stockpilot.time_utils import utcnow
from ..validation import coerce_date
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import build_movement, append_movement
from .pagination import Page, paginate
"""
StockPilot Inventory Invariants (authoritative)

Stock model:
- Product.stock is the on-hand quantity and is never negative.
- Every change to Product.stock goes through try_adjust_stock(), a single
  conditional UPDATE (stock = stock + delta WHERE stock + delta >= 0). There is
  no read-check-write sequence, so concurrent requests cannot oversell.
- Every stock change is paired with exactly one InventoryMovement written in
  the same DB transaction (see ledger_service).

Batches (lots):
- Each stock-in creates one ProductBatch with initial = remaining = quantity
  and a snapshot of the product's cost.
- Outflows (sales, removal adjustments) draw batches down first-expired-
  first-out. Batches are consumed before untracked stock so that
  SUM(remaining_quantity) <= Product.stock always holds.
- Product.expiry_date is the latest expiry among received batches.

Time semantics:
- movement_date is server time (UTC-naive).
- Date filters are inclusive whole days.
"""


@dataclass(frozen=True)
class StockChange:
    product_id: int
    delta: int
    stock_before: int
    stock_after: int


@dataclass(frozen=True)
class BatchConsumption:
    batch: ProductBatch
    quantity: int


def _require_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    return value


def get_product(product_id: int, *, require_active: bool = False, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    # A deactivated product counts as missing for ledger and order writes.
    if product is None or (require_active and not product.is_active):
        raise NotFound(f"Product with ID {product_id} not found.", details={"product_id": product_id})
    return product


def try_adjust_stock(product_id: int, delta: int) -> StockChange | None:
    """
    Atomically apply delta to a product's stock if the result stays >= 0.

    Returns the before/after snapshot, or None when the product does not
    exist or the change would drive stock negative (zero rows matched).
    Does not commit.
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.stock + delta >= 0)
        .values(
            stock=Product.stock + delta,
            version_id=Product.version_id + 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        return None

    # Reload so the session's copy carries the new stock and version.
    product = db.session.get(Product, product_id)
    db.session.refresh(product)
    return StockChange(
        product_id=product_id,
        delta=delta,
        stock_before=product.stock - delta,
        stock_after=product.stock,
    )


def consume_batches_fefo(product: Product, quantity: int) -> list[BatchConsumption]:
    """
    Draw quantity down from the product's lots, soonest expiry first.

    Stops when lots run out; any remainder came from untracked stock.
    Does not touch Product.stock (the caller already did) and does not commit.
    """
    if quantity <= 0:
        return []

    batches = (
        lock_for_update(
            db.session.query(ProductBatch).filter(
                ProductBatch.product_id == product.id,
                ProductBatch.remaining_quantity > 0,
            )
        )
        .order_by(ProductBatch.expiry_date.asc(), ProductBatch.id.asc())
        .all()
    )

    consumed: list[BatchConsumption] = []
    needed = quantity
    for batch in batches:
        if needed <= 0:
            break
        take = min(batch.remaining_quantity, needed)
        batch.remaining_quantity -= take
        needed -= take
        consumed.append(BatchConsumption(batch=batch, quantity=take))

    db.session.flush()
    return consumed


def _next_batch_code(product: Product) -> str:
    count = db.session.query(ProductBatch).filter_by(product_id=product.id).count()
    return f"LOT-{product.id}-{count + 1:04d}"


def record_stock_in(
    *,
    product_id: int,
    quantity: int,
    batch_expiry_date,
    actor,
    notes: str | None = None,
) -> InventoryMovement:
    """
    Receive a new lot of stock.

    Appends a ProductBatch, raises Product.stock, moves Product.expiry_date
    forward when the lot expires later, and appends a 'stock-in' movement,
    all in one transaction.
    """
    quantity = _require_int("quantity", quantity)
    if quantity <= 0:
        raise ValidationError("quantity must be at least 1")
    expiry = coerce_date("batch_expiry_date", batch_expiry_date)
    if expiry is None:
        raise ValidationError("batch_expiry_date is required for stock-in")

    def _op():
        product = get_product(product_id, require_active=True)

        change = try_adjust_stock(product.id, quantity)
        if change is None:
            raise TransactionFailure("Stock update for stock-in matched no product row. Please retry.")

        batch = ProductBatch(
            product_id=product.id,
            batch_code=_next_batch_code(product),
            expiry_date=expiry,
            initial_quantity=quantity,
            remaining_quantity=quantity,
            cost_per_unit_cents=product.cost_cents or 0,
            received_at=utcnow(),
        )
        db.session.add(batch)
        db.session.flush()

        if product.expiry_date is None or expiry > product.expiry_date:
            product.expiry_date = expiry

        movement = append_movement(build_movement(
            product=product,
            movement_type="stock-in",
            quantity=quantity,
            stock_before=change.stock_before,
            actor=actor,
            notes=notes or f"Stocked in {quantity} units.",
            batch=batch,
        ))

        db.session.commit()
        current_app.logger.info(
            "Stock-in: product=%s qty=%s batch=%s stock %s->%s",
            product.id, quantity, batch.batch_code, change.stock_before, change.stock_after,
        )
        return movement

    return run_with_retry(_op)


def record_stock_adjustment(
    *,
    product_id: int,
    quantity_change: int,
    reason: str,
    actor,
    notes: str | None = None,
) -> InventoryMovement:
    """
    Correct on-hand stock up or down (count corrections, damage, shrink).

    Rejected with InvalidAdjustment, before anything is written, when the
    result would be negative.
    """
    quantity_change = _require_int("quantity_change", quantity_change)
    if quantity_change == 0:
        raise ValidationError("quantity_change cannot be zero")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("reason is required for a stock adjustment")

    def _op():
        product = get_product(product_id, require_active=True)

        if product.stock + quantity_change < 0:
            raise InvalidAdjustment(
                f"Adjustment would result in negative stock ({product.stock + quantity_change}). "
                f"Current stock: {product.stock}.",
                details={"product_id": product.id, "stock": product.stock, "quantity_change": quantity_change},
            )

        change = try_adjust_stock(product.id, quantity_change)
        if change is None:
            # Stock moved underneath us between the read and the update.
            db.session.refresh(product)
            raise InvalidAdjustment(
                f"Adjustment would result in negative stock. Current stock: {product.stock}.",
                details={"product_id": product.id, "stock": product.stock, "quantity_change": quantity_change},
            )

        if quantity_change < 0:
            consume_batches_fefo(product, -quantity_change)

        movement_type = "adjustment-add" if quantity_change > 0 else "adjustment-remove"
        movement = append_movement(build_movement(
            product=product,
            movement_type=movement_type,
            quantity=quantity_change,
            stock_before=change.stock_before,
            actor=actor,
            notes=f"{reason} - {notes}" if notes else reason,
        ))

        db.session.commit()
        current_app.logger.info(
            "Stock adjustment: product=%s change=%s stock %s->%s reason=%r",
            product.id, quantity_change, change.stock_before, change.stock_after, reason,
        )
        return movement

    return run_with_retry(_op)


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _day_end(d: date) -> datetime:
    return datetime.combine(d, time.max)


def get_inventory_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    date_from=None,
    date_to=None,
    page: int | None = None,
    limit: int | None = None,
) -> Page:
    """Ledger listing, newest first."""
    if movement_type and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(MOVEMENT_TYPES)}")

    q = db.session.query(InventoryMovement)
    if product_id is not None:
        q = q.filter(InventoryMovement.product_id == product_id)
    if movement_type:
        q = q.filter(InventoryMovement.type == movement_type)

    start = coerce_date("date_from", date_from)
    end = coerce_date("date_to", date_to)
    if start is not None:
        q = q.filter(InventoryMovement.movement_date >= _day_start(start))
    if end is not None:
        q = q.filter(InventoryMovement.movement_date <= _day_end(end))

    q = q.order_by(InventoryMovement.movement_date.desc(), InventoryMovement.id.desc())
    return paginate(q, page=page, limit=limit)


def list_product_batches(product_id: int, *, include_empty: bool = True) -> list[ProductBatch]:
    """Stock-in history of a product's lots, in consumption (FEFO) order."""
    get_product(product_id)

    q = db.session.query(ProductBatch).filter(ProductBatch.product_id == product_id)
    if not include_empty:
        q = q.filter(ProductBatch.remaining_quantity > 0)
    return q.order_by(ProductBatch.expiry_date.asc(), ProductBatch.id.asc()).all()
