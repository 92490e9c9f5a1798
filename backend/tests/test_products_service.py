from datetime import date, timedelta

import pytest

from stockpilot.errors import PermissionDenied, ValidationError
from stockpilot.models import Product
from stockpilot.services.inventory_service import record_stock_adjustment, record_stock_in
from stockpilot.services.products_service import delete_product, list_expiring_products
from stockpilot.time_utils import utcnow
from stockpilot.validation import enforce_rules_product


TODAY = date(2027, 1, 1)


def _set_expiry(db_session, product, expiry):
    product = db_session.get(Product, product.id)
    product.expiry_date = expiry
    db_session.commit()
    return product


def test_expiring_products_window(db_session, make_product, admin_actor):
    soon = make_product(name="Milk")
    record_stock_in(product_id=soon.id, quantity=5, batch_expiry_date="2027-01-10", actor=admin_actor)

    # latest lot is far out, but an older lot with stock left expires inside the window
    mixed = make_product(name="Yogurt")
    record_stock_in(product_id=mixed.id, quantity=2, batch_expiry_date="2027-01-15", actor=admin_actor)
    record_stock_in(product_id=mixed.id, quantity=2, batch_expiry_date="2027-09-01", actor=admin_actor)

    # the short-dated lot is used up, so only the far lot remains
    drained = make_product(name="Cheese")
    record_stock_in(product_id=drained.id, quantity=1, batch_expiry_date="2027-01-05", actor=admin_actor)
    record_stock_in(product_id=drained.id, quantity=4, batch_expiry_date="2027-12-01", actor=admin_actor)
    record_stock_adjustment(product_id=drained.id, quantity_change=-1, reason="Spoiled", actor=admin_actor)

    inactive = _set_expiry(db_session, make_product(name="Old Bread"), date(2027, 1, 20))
    inactive.is_active = False
    db_session.commit()

    _set_expiry(db_session, make_product(name="Expired Jam"), date(2026, 12, 20))
    _set_expiry(db_session, make_product(name="Edge Butter"), date(2027, 1, 31))

    alerts = list_expiring_products(30, today=TODAY)
    assert [(a.product.name, a.expires_on) for a in alerts] == [
        ("Milk", date(2027, 1, 10)),
        ("Yogurt", date(2027, 1, 15)),
        ("Edge Butter", date(2027, 1, 31)),
    ]
    assert alerts[1].to_dict()["expires_on"] == "2027-01-15"

    assert [a.product.name for a in list_expiring_products(8, today=TODAY)] == []
    assert [a.product.name for a in list_expiring_products(9, today=TODAY)] == ["Milk"]


def test_expiring_products_rejects_bad_window(db_session):
    with pytest.raises(ValidationError):
        list_expiring_products(-1)
    with pytest.raises(ValidationError):
        list_expiring_products("30")


def test_delete_product_without_history_removes_row(db_session, make_product, admin_actor, staff_actor):
    product = make_product()

    with pytest.raises(PermissionDenied):
        delete_product(product.id, staff_actor)

    assert delete_product(product.id, admin_actor) is True
    assert db_session.get(Product, product.id) is None


def test_cli_expiring(app, db_session, make_product):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["products", "expiring"])
    assert result.exit_code == 0
    assert "PASS No products expire within 30 day(s)." in result.output

    _set_expiry(db_session, make_product(name="Cream"), utcnow().date() + timedelta(days=5))
    result = runner.invoke(args=["products", "expiring", "--days", "7"])
    assert result.exit_code == 0
    assert "WARN 1 product(s) expire within 7 day(s):" in result.output
    assert "Cream" in result.output

    result = runner.invoke(args=["products", "expiring", "--days", "2"])
    assert "PASS" in result.output


def test_product_rules_cover_writable_amounts(db_session):
    enforce_rules_product({"price_cents": 0, "cost_cents": 0, "low_stock_threshold": 0})

    with pytest.raises(ValidationError, match="low_stock_threshold must be >= 0"):
        enforce_rules_product({"low_stock_threshold": -1})
    with pytest.raises(ValidationError, match="price_cents must be >= 0"):
        enforce_rules_product({"price_cents": -5})
