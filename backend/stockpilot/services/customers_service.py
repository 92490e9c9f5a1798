# backend/stockpilot/services/customers_service.py
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import Customer

CUSTOMER_WRITABLE_FIELDS = {"name", "email", "phone", "is_active"}
CUSTOMER_REQUIRED_ON_CREATE = {"name"}


def create_customer(*, patch: dict) -> Customer:
    customer = Customer()
    for k, v in patch.items():
        if k in CUSTOMER_WRITABLE_FIELDS:
            setattr(customer, k, v)

    if customer.email == "":
        customer.email = None
    elif customer.email is not None:
        customer.email = customer.email.lower()
        if "@" not in customer.email:
            raise ValidationError("email must be a valid email address", details={"email": customer.email})

    db.session.add(customer)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"A customer with email '{customer.email}' already exists")

    current_app.logger.info("Customer %s created", customer.id)
    return customer


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFound("Customer not found.", details={"customer_id": customer_id})
    return customer
