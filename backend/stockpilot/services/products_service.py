# backend/stockpilot/services/products_service.py
"""
Products Service

Catalog master data. Stock is NOT writable here: a product starts at zero
and only the ledger operations (stock-in, adjustment, sale) move it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from flask import current_app
from sqlalchemy import exists, or_
from sqlalchemy.exc import IntegrityError

from ..errors import PermissionDenied, ValidationError
from ..extensions import db
from ..models import Product, ProductBatch, InventoryMovement, OrderLine
from stockpilot.time_utils import utcnow
from .inventory_service import get_product

PRODUCT_WRITABLE_FIELDS = {
    "sku", "name", "description", "price_cents", "cost_cents", "low_stock_threshold", "is_active",
}
PRODUCT_REQUIRED_ON_CREATE = {"name", "price_cents"}

EXPIRY_ALERT_DAYS = 30


@dataclass(frozen=True)
class ExpiringProduct:
    product: Product
    # Soonest expiry inside the window (product expiry or a lot with stock left)
    expires_on: date

    def to_dict(self) -> dict:
        data = self.product.to_dict()
        data["expires_on"] = self.expires_on.isoformat()
        return data


def create_product(*, patch: dict) -> Product:
    """Create product using a validated patch dict."""
    product = Product(stock=0)
    for k, v in patch.items():
        if k not in PRODUCT_WRITABLE_FIELDS:
            continue
        setattr(product, k, v)

    if product.sku == "":
        product.sku = None

    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"SKU '{product.sku}' already exists", details={"sku": product.sku})

    current_app.logger.info("Product %s created (sku=%s)", product.id, product.sku)
    return product


def list_low_stock_products() -> list[Product]:
    """Active products at or below their low-stock threshold, lowest stock first."""
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.stock <= Product.low_stock_threshold)
        .order_by(Product.stock.asc(), Product.name.asc(), Product.id.asc())
        .all()
    )


def list_expiring_products(within_days: int = EXPIRY_ALERT_DAYS, *, today: date | None = None) -> list[ExpiringProduct]:
    """
    Active products expiring between today and today + within_days (inclusive).

    A product qualifies when its own expiry_date falls in the window or when one
    of its lots with stock left does. Soonest expiry first.
    """
    if isinstance(within_days, bool) or not isinstance(within_days, int) or within_days < 0:
        raise ValidationError("within_days must be a non-negative integer")

    start = today or utcnow().date()
    end = start + timedelta(days=within_days)

    live_batch_in_window = exists().where(
        ProductBatch.product_id == Product.id,
        ProductBatch.remaining_quantity > 0,
        ProductBatch.expiry_date >= start,
        ProductBatch.expiry_date <= end,
    )
    products = (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            or_(
                Product.expiry_date.between(start, end),
                live_batch_in_window,
            ),
        )
        .all()
    )

    result = []
    for product in products:
        dates = [
            b.expiry_date for b in product.batches
            if b.remaining_quantity > 0 and start <= b.expiry_date <= end
        ]
        if product.expiry_date is not None and start <= product.expiry_date <= end:
            dates.append(product.expiry_date)
        result.append(ExpiringProduct(product=product, expires_on=min(dates)))

    result.sort(key=lambda e: (e.expires_on, e.product.name, e.product.id))
    return result


def _has_history(product_id: int) -> bool:
    movement = db.session.query(InventoryMovement.id).filter_by(product_id=product_id).first()
    if movement is not None:
        return True
    line = db.session.query(OrderLine.id).filter_by(product_id=product_id).first()
    return line is not None


def delete_product(product_id: int, actor) -> bool:
    """
    Remove a product (admin only).

    Products that appear in orders or the movement ledger are deactivated
    instead, so historical rows keep a valid product reference.

    Returns True when the row was deleted, False when it was deactivated.
    """
    if actor is None or not actor.is_admin:
        raise PermissionDenied("Permission denied. Only admins can delete products.")

    product = get_product(product_id)

    if _has_history(product.id):
        product.is_active = False
        db.session.commit()
        current_app.logger.info("Product %s has history; deactivated instead of deleted", product_id)
        return False

    db.session.delete(product)
    db.session.commit()
    current_app.logger.info("Product %s deleted by %s", product_id, actor.name)
    return True

