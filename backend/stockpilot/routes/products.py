# backend/stockpilot/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication; deletion requires admin.
Stock is not writable through these routes: use /api/inventory/stock-in
and /api/inventory/adjustments.
"""
from flask import Blueprint, request, g

from ..errors import DomainError
from ..models import Product
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_product
from ..services import inventory_service, products_service
from ..services.products_service import PRODUCT_WRITABLE_FIELDS, PRODUCT_REQUIRED_ON_CREATE
from ..decorators import require_auth, require_role
from .responses import ok, error_response, server_error, query_int


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_WRITABLE_FIELDS,
    required_on_create=PRODUCT_REQUIRED_ON_CREATE,
)


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = products_service.create_product(patch=patch)
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to create product")

    return ok(201, product=product.to_dict())


@products_bp.get("/low-stock")
@require_auth
def low_stock_route():
    try:
        products = products_service.list_low_stock_products()
    except Exception:
        return server_error("Failed to list low-stock products")

    return ok(products=[p.to_dict() for p in products], count=len(products))


@products_bp.get("/expiring")
@require_auth
def expiring_route():
    """Active products expiring soon. ?days=N sets the window (default 30)."""
    try:
        days = query_int("days")
        alerts = products_service.list_expiring_products(
            products_service.EXPIRY_ALERT_DAYS if days is None else days
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list expiring products")

    return ok(products=[a.to_dict() for a in alerts], count=len(alerts))


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = inventory_service.get_product(product_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to load product")

    return ok(product=product.to_dict(include_batches=True))


@products_bp.get("/<int:product_id>/batches")
@require_auth
def product_batches_route(product_id: int):
    """Lot history in consumption (FEFO) order. ?active=true hides empty lots."""
    active_only = request.args.get("active", "false").lower() == "true"
    try:
        batches = inventory_service.list_product_batches(product_id, include_empty=not active_only)
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list product batches")

    return ok(batches=[b.to_dict() for b in batches], count=len(batches))


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    """
    Delete a product. Products with order or ledger history are deactivated
    instead; the response says which happened.
    """
    try:
        deleted = products_service.delete_product(product_id, g.current_user)
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to delete product")

    return ok(deleted=deleted, deactivated=not deleted)
