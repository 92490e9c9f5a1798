from __future__ import annotations

from ..extensions import db
from stockpilot.time_utils import utcnow, to_utc_z, to_iso_date


ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "completed", "cancelled")
DISCOUNT_TYPES = ("percentage", "fixed")


class Order(db.Model):
    """
    Order document.

    Created exactly once by the order service, together with its lines, the
    matching stock decrements and the sale movements. After that only status
    and updated_at ever change.

    customer_name, created_by_name and the line snapshots are historical
    copies: later catalog or customer edits do not rewrite past orders.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.CheckConstraint(
            "discount_amount_cents >= 0 AND discount_amount_cents <= subtotal_cents",
            name="ck_orders_discount_range",
        ),
        db.CheckConstraint(
            "total_amount_cents = subtotal_cents - discount_amount_cents + shipping_fee_cents",
            name="ck_orders_total",
        ),
        db.CheckConstraint(
            "profit_cents = total_amount_cents - cost_of_goods_sold_cents",
            name="ck_orders_profit",
        ),
        db.Index("ix_orders_status_date", "status", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable order number (e.g., "ORD-20260118-0001")
    order_number = db.Column(db.String(32), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    # Financials (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_type = db.Column(db.String(16), nullable=True)
    discount_value = db.Column(db.Numeric(12, 4), nullable=True)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    cost_of_goods_sold_cents = db.Column(db.Integer, nullable=False)
    profit_cents = db.Column(db.Integer, nullable=False)

    # Lifecycle status
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    # User attribution
    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_by_name = db.Column(db.String(255), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer")
    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.line_number",
        lazy=True,
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status!r}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "subtotal_cents": self.subtotal_cents,
            "discount_type": self.discount_type,
            "discount_value": float(self.discount_value) if self.discount_value is not None else None,
            "discount_amount_cents": self.discount_amount_cents,
            "shipping_fee_cents": self.shipping_fee_cents,
            "total_amount_cents": self.total_amount_cents,
            "cost_of_goods_sold_cents": self.cost_of_goods_sold_cents,
            "profit_cents": self.profit_cents,
            "status": self.status,
            "order_date": to_utc_z(self.order_date),
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """Individual line items on an order (snapshots of the product at sale time)."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "line_number", name="uq_order_lines_order_line"),
        db.CheckConstraint("quantity >= 1", name="ck_order_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    # Unit cost at sale time
    cost_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.String(500), nullable=True)

    order = db.relationship("Order", back_populates="lines")
    batches_used = db.relationship(
        "OrderLineBatch",
        back_populates="line",
        order_by="OrderLineBatch.id",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "cost_cents": self.cost_cents,
            "line_total_cents": self.line_total_cents,
            "notes": self.notes,
            "batches_used": [b.to_dict() for b in self.batches_used],
        }


class OrderLineBatch(db.Model):
    """Lot consumed by an order line (first-expired-first-out)."""
    __tablename__ = "order_line_batches"
    __table_args__ = (
        db.CheckConstraint("quantity_used > 0", name="ck_order_line_batches_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_line_id = db.Column(
        db.Integer, db.ForeignKey("order_lines.id", ondelete="CASCADE"), nullable=False, index=True
    )
    batch_id = db.Column(db.Integer, db.ForeignKey("product_batches.id"), nullable=False)
    batch_code = db.Column(db.String(64), nullable=False)
    expiry_date = db.Column(db.Date, nullable=False)
    quantity_used = db.Column(db.Integer, nullable=False)

    line = db.relationship("OrderLine", back_populates="batches_used")

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "batch_code": self.batch_code,
            "expiry_date": to_iso_date(self.expiry_date),
            "quantity_used": self.quantity_used,
        }


class OrderSequence(db.Model):
    """
    Atomic per-day order number counter.

    WHY: Prevent two concurrent orders from computing the same number.
    next_number is the sequence the next order of that day will receive.
    """
    __tablename__ = "order_sequences"
    __table_args__ = (
        db.UniqueConstraint("sequence_date", name="uq_order_sequences_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    # YYYYMMDD
    sequence_date = db.Column(db.String(8), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sequence_date": self.sequence_date,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
