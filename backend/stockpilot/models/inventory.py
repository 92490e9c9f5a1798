from __future__ import annotations

from ..extensions import db
from stockpilot.time_utils import utcnow, to_utc_z, to_iso_date


MOVEMENT_TYPES = ("sale", "stock-in", "adjustment-add", "adjustment-remove")


class Product(db.Model):
    """
    Product master data.

    STOCK DESIGN DECISION:
    Product.stock is the current on-hand quantity. It is only ever changed by
    the ledger services (sale, stock-in, adjustment), each of which appends an
    InventoryMovement in the same DB transaction. The CHECK constraint is the
    last line of defence for "stock never goes negative"; services reject the
    operation before the database has to.

    Product.expiry_date is the latest expiry across received batches.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)
    expiry_date = db.Column(db.Date, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    batches = db.relationship(
        "ProductBatch",
        back_populates="product",
        order_by="[ProductBatch.expiry_date, ProductBatch.id]",
        lazy=True,
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    def to_dict(self, include_batches: bool = False) -> dict:
        data = {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock": self.stock,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "expiry_date": to_iso_date(self.expiry_date),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_batches:
            data["batches"] = [b.to_dict() for b in self.batches]
        return data


class ProductBatch(db.Model):
    """
    One lot of stock received by a single stock-in.

    remaining_quantity is drawn down first-expired-first-out by sales and
    removal adjustments. The sum of remaining quantities never exceeds
    Product.stock; stock that predates batch tracking is simply untracked.
    """
    __tablename__ = "product_batches"
    __table_args__ = (
        db.UniqueConstraint("product_id", "batch_code", name="uq_product_batches_product_code"),
        db.CheckConstraint("remaining_quantity >= 0", name="ck_product_batches_remaining_non_negative"),
        db.CheckConstraint("remaining_quantity <= initial_quantity", name="ck_product_batches_remaining_le_initial"),
        db.Index("ix_product_batches_product_expiry", "product_id", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    batch_code = db.Column(db.String(64), nullable=False)
    expiry_date = db.Column(db.Date, nullable=False)
    initial_quantity = db.Column(db.Integer, nullable=False)
    remaining_quantity = db.Column(db.Integer, nullable=False)
    cost_per_unit_cents = db.Column(db.Integer, nullable=False, default=0)

    received_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product", back_populates="batches")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "batch_code": self.batch_code,
            "expiry_date": to_iso_date(self.expiry_date),
            "initial_quantity": self.initial_quantity,
            "remaining_quantity": self.remaining_quantity,
            "cost_per_unit_cents": self.cost_per_unit_cents,
            "received_at": to_utc_z(self.received_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only stock ledger row.

    One row per stock-affecting event. quantity is signed (negative for
    outflow) and stock_after = stock_before + quantity always holds.
    product_name is a snapshot taken at the time of the movement.

    related_order_id is a plain integer on purpose: orders can be deleted,
    ledger rows cannot.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.CheckConstraint("stock_after = stock_before + quantity", name="ck_movements_stock_delta"),
        db.CheckConstraint("stock_after >= 0", name="ck_movements_stock_after_non_negative"),
        db.Index("ix_movements_product_date", "product_id", "movement_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    type = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    movement_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    user_id = db.Column(db.Integer, nullable=True)
    user_name = db.Column(db.String(255), nullable=True)

    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    batch_id = db.Column(db.Integer, db.ForeignKey("product_batches.id"), nullable=True)
    batch_expiry_date = db.Column(db.Date, nullable=True)
    related_order_id = db.Column(db.Integer, nullable=True, index=True)

    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "type": self.type,
            "quantity": self.quantity,
            "movement_date": to_utc_z(self.movement_date),
            "user_id": self.user_id,
            "user_name": self.user_name,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "batch_id": self.batch_id,
            "batch_expiry_date": to_iso_date(self.batch_expiry_date),
            "related_order_id": self.related_order_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
