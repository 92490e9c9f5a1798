# backend/stockpilot/routes/customers.py
from flask import Blueprint, request

from ..errors import DomainError
from ..models import Customer
from ..validation import ModelValidationPolicy, validate_payload
from ..services import customers_service
from ..services.customers_service import CUSTOMER_WRITABLE_FIELDS, CUSTOMER_REQUIRED_ON_CREATE
from ..decorators import require_auth
from .responses import ok, error_response, server_error


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=CUSTOMER_WRITABLE_FIELDS,
    required_on_create=CUSTOMER_REQUIRED_ON_CREATE,
)


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = customers_service.create_customer(patch=patch)
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to create customer")

    return ok(201, customer=customer.to_dict())


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customers_service.get_customer(customer_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to load customer")

    return ok(customer=customer.to_dict())
