# backend/stockpilot/routes/orders.py
"""
Order routes.

SECURITY: All routes require authentication.
- Any authenticated user can create, list, view and move order status
- Deleting an order requires the admin role

The acting user (attribution on the order and its sale movements) is taken
from the authenticated token, NOT from the request body.
"""
from flask import Blueprint, request, g

from ..errors import DomainError, ValidationError
from ..validation import coerce_int
from ..services import order_service, order_lifecycle
from ..decorators import require_auth, require_role
from .responses import ok, error_response, server_error, query_int


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order.

    Body:
        {
            "customer_id": 1,
            "items": [{"product_id": 3, "quantity": 2, "unit_price_cents": 2500}],
            "discount_type": "percentage" | "fixed" | null,
            "discount_value": 10,
            "shipping_fee_cents": 500,
            "notes": "..."
        }

    Error responses:
        400: Malformed input
        404: Customer or product not found
        409: Insufficient stock (nothing was deducted)
        503: Write conflict or order number collision; safe to retry
    """
    payload = request.get_json(silent=True) or {}

    try:
        customer_id = payload.get("customer_id")
        order = order_service.create_order(
            customer_id=coerce_int("customer_id", customer_id) if customer_id is not None else None,
            items=payload.get("items"),
            discount_type=payload.get("discount_type"),
            discount_value=payload.get("discount_value"),
            shipping_fee_cents=payload.get("shipping_fee_cents"),
            notes=payload.get("notes"),
            actor=g.current_user,
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to create order")

    return ok(201, order=order.to_dict())


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    List orders, newest first.

    Query params: search, customer_id, status, date_from, date_to, page, limit
    """
    try:
        result = order_service.get_orders(
            search=request.args.get("search"),
            customer_id=query_int("customer_id"),
            status=request.args.get("status") or None,
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            page=query_int("page"),
            limit=query_int("limit"),
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list orders")

    return ok(**result.to_dict(lambda o: o.to_dict(include_lines=False), key="orders"))


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to load order")

    return ok(order=order.to_dict())


@orders_bp.patch("/<int:order_id>/status")
@require_auth
def update_order_status_route(order_id: int):
    """
    Move an order along its lifecycle.

    Body: {"status": "shipped"}

    Error responses:
        400: Unknown status
        404: Order not found
        409: Transition not allowed from the current status
    """
    payload = request.get_json(silent=True) or {}
    new_status = payload.get("status")
    if not new_status:
        return error_response(ValidationError("status is required"))

    try:
        order = order_lifecycle.update_order_status(order_id, new_status)
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to update order status")

    return ok(order=order.to_dict())


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_role("admin")
def delete_order_route(order_id: int):
    """
    Permanently delete an order.

    Stock is NOT restored. Sale movements stay in the ledger.
    """
    try:
        order_service.delete_order(order_id, g.current_user)
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to delete order")

    return ok(message="Order deleted. Stock was not restored.")
