import pytest

from stockpilot.errors import NotFound, ValidationError
from stockpilot.models import User
from stockpilot.services import session_service


def test_token_is_stored_hashed(db_session):
    user, token = session_service.create_user(username="kim", name="Kim", role="staff")

    stored = db_session.get(User, user.id)
    assert stored.api_token_hash == session_service.hash_token(token)
    assert token not in stored.api_token_hash


def test_validate_token_resolves_acting_user(db_session):
    user, token = session_service.create_user(username="lee", name="Lee", role="admin")

    actor = session_service.validate_token(token)
    assert actor.id == user.id
    assert actor.name == "Lee"
    assert actor.is_admin

    assert session_service.validate_token("wrong") is None
    assert session_service.validate_token(None) is None


def test_inactive_user_is_rejected(db_session):
    user, token = session_service.create_user(username="old", name="Old")
    user.is_active = False
    db_session.commit()

    assert session_service.validate_token(token) is None


def test_issue_token_rotates(db_session):
    _, old_token = session_service.create_user(username="pat", name="Pat")

    new_token = session_service.issue_token("pat")

    assert session_service.validate_token(old_token) is None
    assert session_service.validate_token(new_token).name == "Pat"
    with pytest.raises(NotFound):
        session_service.issue_token("nobody")


def test_create_user_validation(db_session):
    with pytest.raises(ValidationError):
        session_service.create_user(username="", name="X")
    with pytest.raises(ValidationError):
        session_service.create_user(username="x", name="X", role="owner")


def test_cli_create_user_and_low_stock(app, db_session, make_product):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "create", "--username", "ops", "--name", "Ops", "--role", "admin"])
    assert result.exit_code == 0
    assert "PASS Created user 'ops'" in result.output
    token = result.output.split("Token: ", 1)[1].split()[0]
    assert session_service.validate_token(token).role == "admin"

    make_product(name="Flour", stock=1, low_stock_threshold=5)
    result = runner.invoke(args=["products", "low-stock"])
    assert result.exit_code == 0
    assert "Flour" in result.output
