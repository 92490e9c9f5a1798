# Overview: Service-layer operations for orders; stock deduction, pricing and numbering in one transaction.

"""
StockPilot Order Service

WHY: An order is the only place where several products' stock, the movement
ledger and a new document must change together. Either every line is
deducted, every sale movement appended and the order stored, or nothing is.

Flow of create_order (single DB transaction, retried on write conflicts):
    1. Validate input (no I/O)
    2. Resolve customer
    3. Per line, in request order: atomic conditional stock decrement,
       FEFO lot consumption, line snapshot (name, SKU, price, cost)
    4. Compute totals from the lines (pricing_service)
    5. Allocate the order number (sequence_service)
    6. Insert order + lines, then the sale movements pointing at it
    7. Commit

The first line whose stock is short aborts the whole order with
InsufficientStock; earlier decrements are rolled back with it.
"""

from __future__ import annotations

from datetime import datetime, time

from flask import current_app
from sqlalchemy import or_

from ..errors import InsufficientStock, NotFound, PermissionDenied, ValidationError
from ..extensions import db
from ..models import Customer, Order, OrderLine, OrderLineBatch, InventoryMovement
from ..validation import OrderItemRequest, coerce_date, normalize_order_items, normalize_order_terms
from stockpilot.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import get_product, try_adjust_stock, consume_batches_fefo
from .ledger_service import build_movement, append_movements
from .order_lifecycle import validate_status
from .pagination import Page, paginate
from .pricing_service import PricingLine, compute_order_totals, line_total_cents
from .sequence_service import next_order_number


__all__ = [
    "OrderItemRequest",
    "create_order",
    "get_order",
    "get_orders",
    "delete_order",
]


def _insufficient_stock(product, requested: int) -> InsufficientStock:
    # Re-read so the message reports what is actually on hand right now.
    db.session.refresh(product)
    return InsufficientStock(
        f"Insufficient stock for product {product.name}. "
        f"Available: {product.stock}, Requested: {requested}.",
        details={
            "product_id": product.id,
            "product_name": product.name,
            "available": product.stock,
            "requested": requested,
        },
    )


def create_order(
    *,
    customer_id: int,
    items,
    discount_type: str | None = None,
    discount_value=None,
    shipping_fee_cents: int | None = 0,
    notes: str | None = None,
    actor,
) -> Order:
    """
    Create an order and deduct its stock atomically.

    Raises:
        ValidationError: malformed input (nothing read or written)
        NotFound: unknown customer or product
        InsufficientStock: a line asks for more than is on hand
        TransactionFailure: write conflict or order number collision (retryable)
    """
    if customer_id is None:
        raise ValidationError("customer_id is required")
    lines_in = normalize_order_items(items)
    terms = normalize_order_terms(discount_type, discount_value, shipping_fee_cents)
    notes = (notes or "").strip() or None

    def _op():
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFound("Customer not found.", details={"customer_id": customer_id})

        now = utcnow()
        order_lines: list[OrderLine] = []
        pending_movements: list[InventoryMovement] = []

        for line_number, item in enumerate(lines_in, start=1):
            product = get_product(item.product_id, require_active=True)

            change = try_adjust_stock(product.id, -item.quantity)
            if change is None:
                raise _insufficient_stock(product, item.quantity)

            consumed = consume_batches_fefo(product, item.quantity)

            unit_price = item.unit_price_cents if item.unit_price_cents is not None else product.price_cents
            line = OrderLine(
                line_number=line_number,
                product_id=product.id,
                product_name=product.name,
                product_sku=product.sku,
                quantity=item.quantity,
                unit_price_cents=unit_price,
                cost_cents=product.cost_cents or 0,
                line_total_cents=line_total_cents(item.quantity, unit_price),
                notes=item.notes,
            )
            for c in consumed:
                line.batches_used.append(OrderLineBatch(
                    batch_id=c.batch.id,
                    batch_code=c.batch.batch_code,
                    expiry_date=c.batch.expiry_date,
                    quantity_used=c.quantity,
                ))
            order_lines.append(line)

            pending_movements.append(build_movement(
                product=product,
                movement_type="sale",
                quantity=-item.quantity,
                stock_before=change.stock_before,
                actor=actor,
                movement_date=now,
            ))

        totals = compute_order_totals(
            [PricingLine(l.quantity, l.unit_price_cents, l.cost_cents) for l in order_lines],
            discount_type=terms.discount_type,
            discount_value=terms.discount_value,
            shipping_fee_cents=terms.shipping_fee_cents,
        )

        order = Order(
            order_number=next_order_number(now.date()),
            customer_id=customer.id,
            customer_name=customer.name,
            subtotal_cents=totals.subtotal_cents,
            discount_type=terms.discount_type,
            discount_value=terms.discount_value,
            discount_amount_cents=totals.discount_amount_cents,
            shipping_fee_cents=totals.shipping_fee_cents,
            total_amount_cents=totals.total_amount_cents,
            cost_of_goods_sold_cents=totals.cost_of_goods_sold_cents,
            profit_cents=totals.profit_cents,
            status="pending",
            order_date=now,
            created_by_user_id=actor.id,
            created_by_name=actor.name,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        order.lines = order_lines
        db.session.add(order)
        db.session.flush()

        for movement in pending_movements:
            movement.related_order_id = order.id
            movement.notes = f"Sale for order {order.order_number}."
        append_movements(pending_movements)

        db.session.commit()
        current_app.logger.info(
            "Order %s created: customer=%s lines=%s total_cents=%s by=%s",
            order.order_number, customer.id, len(order_lines), order.total_amount_cents, actor.name,
        )
        return order

    return run_with_retry(_op)


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found.", details={"order_id": order_id})
    return order


def get_orders(
    *,
    search: str | None = None,
    customer_id: int | None = None,
    status: str | None = None,
    date_from=None,
    date_to=None,
    page: int | None = None,
    limit: int | None = None,
) -> Page:
    """
    Filtered order listing, newest first.

    search matches order number or customer name (case-insensitive substring).
    date_from / date_to are inclusive calendar days on order_date.
    """
    if status == "all":
        status = None
    if status:
        validate_status(status)
    start = coerce_date("date_from", date_from)
    end = coerce_date("date_to", date_to)

    q = db.session.query(Order)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(Order.order_number.ilike(pattern), Order.customer_name.ilike(pattern)))
    if customer_id is not None:
        q = q.filter(Order.customer_id == customer_id)
    if status:
        q = q.filter(Order.status == status)
    if start is not None:
        q = q.filter(Order.order_date >= datetime.combine(start, time.min))
    if end is not None:
        q = q.filter(Order.order_date <= datetime.combine(end, time.max))

    q = q.order_by(Order.order_date.desc(), Order.id.desc())
    return paginate(q, page=page, limit=limit)


def delete_order(order_id: int, actor) -> None:
    """
    Permanently remove an order and its lines (admin only).

    Stock is NOT restored and the sale movements stay in the ledger; their
    related_order_id keeps pointing at the removed order's id.
    """
    if actor is None or not actor.is_admin:
        raise PermissionDenied("Permission denied. Only admins can delete orders.")

    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFound("Order not found.", details={"order_id": order_id})

        order_number = order.order_number
        db.session.delete(order)
        db.session.commit()

        current_app.logger.warning(
            "Order %s deleted by %s; stock was not restored", order_number, actor.name
        )

    run_with_retry(_op)
