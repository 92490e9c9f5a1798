from datetime import date

import pytest

from stockpilot.errors import InvalidAdjustment, NotFound, ValidationError
from stockpilot.models import InventoryMovement, Product, ProductBatch
from stockpilot.services import inventory_service
from stockpilot.services.ledger_service import build_movement
from stockpilot.services.inventory_service import (
    consume_batches_fefo,
    get_inventory_movements,
    record_stock_adjustment,
    record_stock_in,
    try_adjust_stock,
)


def _movements(db_session, product_id):
    return (
        db_session.query(InventoryMovement)
        .filter_by(product_id=product_id)
        .order_by(InventoryMovement.movement_date.asc(), InventoryMovement.id.asc())
        .all()
    )


def test_stock_in_fifty_units(db_session, make_product, admin_actor):
    product = make_product(stock=10)

    movement = record_stock_in(
        product_id=product.id,
        quantity=50,
        batch_expiry_date="2026-01-01",
        actor=admin_actor,
    )

    product = db_session.get(Product, product.id)
    assert product.stock == 60
    assert product.expiry_date == date(2026, 1, 1)

    batches = db_session.query(ProductBatch).filter_by(product_id=product.id).all()
    assert len(batches) == 1
    assert batches[0].remaining_quantity == 50
    assert batches[0].initial_quantity == 50
    assert batches[0].cost_per_unit_cents == product.cost_cents

    assert movement.type == "stock-in"
    assert movement.quantity == 50
    assert movement.stock_before == 10
    assert movement.stock_after == 60
    assert movement.batch_id == batches[0].id
    assert movement.user_name == "Alice Admin"
    assert len(_movements(db_session, product.id)) == 1


def test_stock_in_requires_expiry_date(db_session, make_product, admin_actor):
    product = make_product(stock=0)
    with pytest.raises(ValidationError):
        record_stock_in(product_id=product.id, quantity=5, batch_expiry_date=None, actor=admin_actor)
    with pytest.raises(ValidationError):
        record_stock_in(product_id=product.id, quantity=0, batch_expiry_date="2027-01-01", actor=admin_actor)
    assert _movements(db_session, product.id) == []


def test_stock_in_unknown_product(db_session, admin_actor):
    with pytest.raises(NotFound) as excinfo:
        record_stock_in(product_id=999, quantity=5, batch_expiry_date="2027-01-01", actor=admin_actor)
    assert "Product with ID 999 not found." in str(excinfo.value)


def test_product_expiry_tracks_latest_batch(db_session, make_product, admin_actor):
    product = make_product()
    record_stock_in(product_id=product.id, quantity=5, batch_expiry_date="2027-06-01", actor=admin_actor)
    record_stock_in(product_id=product.id, quantity=5, batch_expiry_date="2027-01-01", actor=admin_actor)

    assert db_session.get(Product, product.id).expiry_date == date(2027, 6, 1)


def test_negative_adjustment_past_zero_is_rejected(db_session, make_product, admin_actor):
    product = make_product(stock=3)

    with pytest.raises(InvalidAdjustment):
        record_stock_adjustment(
            product_id=product.id, quantity_change=-5, reason="Damaged", actor=admin_actor
        )

    assert db_session.get(Product, product.id).stock == 3
    assert _movements(db_session, product.id) == []


def test_adjustment_requires_reason_and_non_zero_change(db_session, make_product, admin_actor):
    product = make_product(stock=3)
    with pytest.raises(ValidationError):
        record_stock_adjustment(product_id=product.id, quantity_change=0, reason="Count", actor=admin_actor)
    with pytest.raises(ValidationError):
        record_stock_adjustment(product_id=product.id, quantity_change=2, reason="  ", actor=admin_actor)


def test_adjustments_add_and_remove(db_session, make_product, admin_actor):
    product = make_product(stock=10)

    added = record_stock_adjustment(
        product_id=product.id, quantity_change=4, reason="Recount", actor=admin_actor, notes="shelf B"
    )
    removed = record_stock_adjustment(
        product_id=product.id, quantity_change=-6, reason="Damaged", actor=admin_actor
    )

    assert added.type == "adjustment-add"
    assert added.notes == "Recount - shelf B"
    assert (added.stock_before, added.stock_after) == (10, 14)
    assert removed.type == "adjustment-remove"
    assert (removed.stock_before, removed.stock_after) == (14, 8)
    assert db_session.get(Product, product.id).stock == 8


def test_removal_draws_down_batches_first_expired_first(db_session, make_product, admin_actor):
    product = make_product()
    record_stock_in(product_id=product.id, quantity=5, batch_expiry_date="2027-03-01", actor=admin_actor)
    record_stock_in(product_id=product.id, quantity=5, batch_expiry_date="2027-01-01", actor=admin_actor)

    record_stock_adjustment(product_id=product.id, quantity_change=-7, reason="Spoiled", actor=admin_actor)

    batches = inventory_service.list_product_batches(product.id)
    assert [(b.expiry_date, b.remaining_quantity) for b in batches] == [
        (date(2027, 1, 1), 0),
        (date(2027, 3, 1), 3),
    ]
    assert [b.remaining_quantity for b in inventory_service.list_product_batches(product.id, include_empty=False)] == [3]


def test_try_adjust_stock_refuses_to_go_negative(db_session, make_product):
    product = make_product(stock=2)

    assert try_adjust_stock(product.id, -3) is None
    change = try_adjust_stock(product.id, -2)
    db_session.commit()

    assert (change.stock_before, change.stock_after) == (2, 0)
    assert db_session.get(Product, product.id).stock == 0


def test_try_adjust_stock_unknown_product(db_session):
    assert try_adjust_stock(12345, 1) is None


def test_fefo_leaves_untracked_stock_last(db_session, make_product, admin_actor):
    product = make_product(stock=4)  # untracked
    record_stock_in(product_id=product.id, quantity=3, batch_expiry_date="2027-01-01", actor=admin_actor)

    product = db_session.get(Product, product.id)
    consumed = consume_batches_fefo(product, 5)
    db_session.commit()

    assert [c.quantity for c in consumed] == [3]
    remaining = sum(b.remaining_quantity for b in inventory_service.list_product_batches(product.id))
    assert remaining == 0


def test_ledger_replays_to_current_stock(db_session, make_product, admin_actor):
    product = make_product(stock=10)
    record_stock_in(product_id=product.id, quantity=20, batch_expiry_date="2027-01-01", actor=admin_actor)
    record_stock_adjustment(product_id=product.id, quantity_change=-7, reason="Shrink", actor=admin_actor)
    record_stock_adjustment(product_id=product.id, quantity_change=2, reason="Found", actor=admin_actor)

    movements = _movements(db_session, product.id)
    for m in movements:
        assert m.stock_after - m.stock_before == m.quantity

    replayed = movements[0].stock_before + sum(m.quantity for m in movements)
    assert replayed == db_session.get(Product, product.id).stock == 25


def test_movement_listing_filters_and_pages(db_session, make_product, admin_actor):
    a = make_product(stock=10)
    b = make_product(stock=10)
    record_stock_in(product_id=a.id, quantity=1, batch_expiry_date="2027-01-01", actor=admin_actor)
    record_stock_in(product_id=b.id, quantity=1, batch_expiry_date="2027-01-01", actor=admin_actor)
    record_stock_adjustment(product_id=a.id, quantity_change=-1, reason="Count", actor=admin_actor)

    page = get_inventory_movements(product_id=a.id)
    assert page.total_count == 2
    assert page.items[0].type == "adjustment-remove"  # newest first

    page = get_inventory_movements(movement_type="stock-in", limit=1)
    assert page.total_count == 2
    assert page.total_pages == 2
    assert len(page.items) == 1

    with pytest.raises(ValidationError):
        get_inventory_movements(movement_type="teleport")
    with pytest.raises(ValidationError):
        get_inventory_movements(date_from="not-a-date")

    assert get_inventory_movements(date_to="2000-01-01").total_count == 0


def test_only_stock_in_movements_carry_a_batch(db_session, make_product, admin_actor):
    product = make_product(stock=0)
    record_stock_in(product_id=product.id, quantity=3, batch_expiry_date="2027-01-01", actor=admin_actor)
    batch = db_session.query(ProductBatch).filter_by(product_id=product.id).one()

    with pytest.raises(ValidationError, match="only stock-in movements carry a batch"):
        build_movement(
            product=product, movement_type="sale", quantity=-1, stock_before=3, actor=admin_actor, batch=batch
        )

    removal = record_stock_adjustment(
        product_id=product.id, quantity_change=-1, reason="Damaged", actor=admin_actor
    )
    assert removal.batch_id is None
    assert removal.batch_expiry_date is None
