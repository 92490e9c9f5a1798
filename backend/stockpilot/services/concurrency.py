# Overview: Transaction helpers shared by every write path; row locking, retry and rollback.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import DomainError, TransactionFailure
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _integrity_failure(exc: IntegrityError) -> TransactionFailure:
    reason = str(getattr(exc, "orig", exc))
    if "order_number" in reason:
        return TransactionFailure(
            "Order number collision; the order was not created. Please retry.",
            details={"reason": "duplicate_order_number"},
            retryable=True,
        )
    return TransactionFailure(
        "The database rejected the change; nothing was saved.",
        details={"reason": "integrity_error"},
        retryable=False,
    )


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a unit of work as one transaction, with retry on concurrency failures.

    - DomainError: rolled back and re-raised unchanged.
    - OperationalError (deadlocks, locks) and StaleDataError (optimistic
      locking conflicts): rolled back and retried with exponential backoff;
      once attempts are exhausted a retryable TransactionFailure is raised.
    - IntegrityError: rolled back and reported as TransactionFailure.
    - Anything else: rolled back and re-raised.

    func is responsible for committing.
    """
    if attempts is None:
        attempts = current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except DomainError:
            db.session.rollback()
            raise
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Transaction gave up after %s attempts: %s", attempts, exc.__class__.__name__
                )
                raise TransactionFailure(
                    "The operation conflicted with a concurrent update. Please retry.",
                    details={"reason": exc.__class__.__name__, "attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except IntegrityError as exc:
            db.session.rollback()
            raise _integrity_failure(exc) from exc
        except Exception:
            db.session.rollback()
            raise
