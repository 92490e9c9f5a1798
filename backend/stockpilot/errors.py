# Overview: Domain error taxonomy shared by services and routes.

"""
StockPilot error taxonomy (authoritative)

Every failure a service can report is one of these classes. Services roll back
the session before raising, so a caller that catches a DomainError can rely on
the database being unchanged by the failed operation.

Routes translate a DomainError into:
    {"success": false, "error": <message>, "code": <code>, "details": {...}}
with the class' http_status.
"""

from __future__ import annotations


class DomainError(ValueError):
    """Base class for business-rule and input failures."""

    code = "domain_error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(DomainError):
    """400-level input problem. Raised before any I/O."""

    code = "validation_error"
    http_status = 400


class NotFound(DomainError):
    code = "not_found"
    http_status = 404


class InsufficientStock(DomainError):
    code = "insufficient_stock"
    http_status = 409


class InvalidAdjustment(DomainError):
    code = "invalid_adjustment"
    http_status = 409


class InvalidTransition(DomainError):
    code = "invalid_transition"
    http_status = 409

    def __init__(self, current_status: str, requested_status: str, message: str | None = None):
        super().__init__(
            message or f"Order cannot move from '{current_status}' to '{requested_status}'.",
            details={"current_status": current_status, "requested_status": requested_status},
        )
        self.current_status = current_status
        self.requested_status = requested_status


class PermissionDenied(DomainError):
    code = "permission_denied"
    http_status = 403


class TransactionFailure(DomainError):
    """
    The store aborted the transaction (write conflict, duplicate order number).

    retryable=True means the same request may succeed if sent again.
    """

    code = "transaction_failure"
    http_status = 503

    def __init__(self, message: str, details: dict | None = None, retryable: bool = True):
        super().__init__(message, details)
        self.retryable = retryable

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retryable"] = self.retryable
        return body
