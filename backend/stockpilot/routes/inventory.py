# backend/stockpilot/routes/inventory.py
"""
Inventory ledger routes.

SECURITY: All routes require authentication.

Time semantics:
- batch_expiry_date and date filters are ISO-8601 calendar dates.
- date_from/date_to filtering is inclusive of both whole days.
"""
from flask import Blueprint, request, g

from ..errors import DomainError, ValidationError
from ..validation import coerce_int
from ..services import inventory_service
from ..decorators import require_auth
from .responses import ok, error_response, server_error, query_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _required_int(payload: dict, name: str) -> int:
    if payload.get(name) is None:
        raise ValidationError(f"Missing required fields: {name}")
    return coerce_int(name, payload[name])


@inventory_bp.post("/stock-in")
@require_auth
def stock_in_route():
    """
    Receive a new lot.

    Body: {"product_id": 1, "quantity": 50, "batch_expiry_date": "2027-03-01", "notes": "..."}
    """
    payload = request.get_json(silent=True) or {}

    try:
        movement = inventory_service.record_stock_in(
            product_id=_required_int(payload, "product_id"),
            quantity=_required_int(payload, "quantity"),
            batch_expiry_date=payload.get("batch_expiry_date"),
            actor=g.current_user,
            notes=payload.get("notes"),
        )
        product = inventory_service.get_product(movement.product_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to record stock-in")

    return ok(201, movement=movement.to_dict(), product=product.to_dict(include_batches=True))


@inventory_bp.post("/adjustments")
@require_auth
def adjustment_route():
    """
    Correct on-hand stock.

    Body: {"product_id": 1, "quantity_change": -3, "reason": "Damaged", "notes": "..."}

    Error responses:
        400: Malformed input, zero change or missing reason
        404: Product not found
        409: Adjustment would drive stock negative
    """
    payload = request.get_json(silent=True) or {}

    try:
        movement = inventory_service.record_stock_adjustment(
            product_id=_required_int(payload, "product_id"),
            quantity_change=_required_int(payload, "quantity_change"),
            reason=payload.get("reason"),
            actor=g.current_user,
            notes=payload.get("notes"),
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to record stock adjustment")

    return ok(201, movement=movement.to_dict())


@inventory_bp.get("/movements")
@require_auth
def movements_route():
    """
    Movement ledger, newest first.

    Query params: product_id, type, date_from, date_to, page, limit
    """
    try:
        result = inventory_service.get_inventory_movements(
            product_id=query_int("product_id"),
            movement_type=request.args.get("type") or None,
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            page=query_int("page"),
            limit=query_int("limit"),
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list inventory movements")

    return ok(**result.to_dict(lambda m: m.to_dict(), key="movements"))
