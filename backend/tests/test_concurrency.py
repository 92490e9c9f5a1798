import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from stockpilot.errors import NotFound, TransactionFailure
from stockpilot.services.concurrency import run_with_retry


class _Flaky:
    """Raises the queued exceptions in turn, then returns 'done'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "done"


def _locked():
    return OperationalError("UPDATE products", {}, Exception("database is locked"))


def test_operational_error_is_retried_then_reported(db_session):
    work = _Flaky(_locked(), _locked(), _locked())

    with pytest.raises(TransactionFailure) as excinfo:
        run_with_retry(work, attempts=3, backoff_base=0)

    assert work.calls == 3
    assert excinfo.value.retryable is True
    assert excinfo.value.details == {"reason": "OperationalError", "attempts": 3}


def test_conflict_that_clears_on_retry_succeeds(db_session):
    work = _Flaky(StaleDataError("version mismatch"))

    assert run_with_retry(work, attempts=2, backoff_base=0) == "done"
    assert work.calls == 2


def test_attempts_default_comes_from_config(db_session):
    # the test app runs with TRANSACTION_RETRY_ATTEMPTS=1
    work = _Flaky(StaleDataError("version mismatch"))

    with pytest.raises(TransactionFailure):
        run_with_retry(work, backoff_base=0)
    assert work.calls == 1


def test_domain_errors_are_not_retried(db_session):
    work = _Flaky(NotFound("Order not found."))

    with pytest.raises(NotFound):
        run_with_retry(work, attempts=3, backoff_base=0)
    assert work.calls == 1


def test_integrity_errors_map_by_constraint(db_session):
    duplicate = IntegrityError(
        "INSERT INTO orders", {}, Exception("UNIQUE constraint failed: orders.order_number")
    )
    with pytest.raises(TransactionFailure) as excinfo:
        run_with_retry(_Flaky(duplicate), attempts=3, backoff_base=0)
    assert excinfo.value.retryable is True
    assert excinfo.value.details == {"reason": "duplicate_order_number"}

    other = IntegrityError("INSERT INTO products", {}, Exception("CHECK constraint failed: ck_products_stock"))
    with pytest.raises(TransactionFailure) as excinfo:
        run_with_retry(_Flaky(other), attempts=3, backoff_base=0)
    assert excinfo.value.retryable is False
    assert excinfo.value.details == {"reason": "integrity_error"}
