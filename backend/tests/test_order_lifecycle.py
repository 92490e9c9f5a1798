import unittest

import pytest

from stockpilot.errors import InvalidTransition, NotFound, ValidationError
from stockpilot.models import Order, Product
from stockpilot.services.order_lifecycle import (
    allowed_next_statuses,
    can_transition,
    update_order_status,
)
from stockpilot.services.order_service import create_order


class TransitionRulesTests(unittest.TestCase):
    def test_forward_path(self):
        self.assertTrue(can_transition("pending", "processing"))
        self.assertTrue(can_transition("pending", "shipped"))
        self.assertTrue(can_transition("processing", "shipped"))
        self.assertTrue(can_transition("shipped", "delivered"))
        self.assertTrue(can_transition("delivered", "completed"))

    def test_cannot_skip_delivery(self):
        self.assertFalse(can_transition("pending", "delivered"))
        self.assertFalse(can_transition("pending", "completed"))
        self.assertFalse(can_transition("shipped", "completed"))

    def test_no_backwards_moves(self):
        self.assertFalse(can_transition("shipped", "pending"))
        self.assertFalse(can_transition("delivered", "processing"))

    def test_cancel_from_any_open_status(self):
        for status in ("pending", "processing", "shipped", "delivered"):
            self.assertTrue(can_transition(status, "cancelled"), status)

    def test_terminal_statuses(self):
        self.assertEqual(allowed_next_statuses("completed"), [])
        self.assertEqual(allowed_next_statuses("cancelled"), [])
        self.assertFalse(can_transition("cancelled", "pending"))

    def test_unknown_status(self):
        with self.assertRaises(ValidationError):
            can_transition("pending", "lost")


@pytest.fixture
def pending_order(db_session, customer, make_product, staff_actor):
    product = make_product(stock=5)
    return create_order(
        customer_id=customer.id, items=[{"product_id": product.id, "quantity": 2}], actor=staff_actor
    )


def test_happy_path_to_completed(db_session, pending_order):
    for status in ("shipped", "delivered", "completed"):
        order = update_order_status(pending_order.id, status)
        assert order.status == status

    assert db_session.get(Order, pending_order.id).status == "completed"


@pytest.mark.parametrize("target", ["delivered", "completed"])
def test_pending_cannot_jump_ahead(db_session, pending_order, target):
    with pytest.raises(InvalidTransition) as excinfo:
        update_order_status(pending_order.id, target)

    assert excinfo.value.details == {"current_status": "pending", "requested_status": target}
    assert f"Order cannot be marked as {target} from 'pending' status." == str(excinfo.value)
    assert db_session.get(Order, pending_order.id).status == "pending"


def test_status_change_leaves_financials_alone(db_session, pending_order):
    before = pending_order.to_dict()
    after = update_order_status(pending_order.id, "processing").to_dict()

    for key in ("order_number", "subtotal_cents", "total_amount_cents", "profit_cents", "items"):
        assert after[key] == before[key]
    assert after["status"] == "processing"


def test_cancel_does_not_restock(db_session, pending_order):
    product_id = pending_order.lines[0].product_id
    update_order_status(pending_order.id, "cancelled")

    assert db_session.get(Product, product_id).stock == 3
    with pytest.raises(InvalidTransition, match="already cancelled"):
        update_order_status(pending_order.id, "pending")


def test_unknown_order_and_status(db_session, pending_order):
    with pytest.raises(NotFound):
        update_order_status(987654, "shipped")
    with pytest.raises(ValidationError):
        update_order_status(pending_order.id, "teleported")
