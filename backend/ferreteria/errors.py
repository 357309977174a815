# Overview: Business error taxonomy shared by services and routes.

"""
Business errors are user-correctable: they carry a stable ``code`` for
clients, a human message and optional ``details``. Routes map them to
4xx responses; anything else is an infrastructure failure (logged and
re-raised, surfaced as a generic 500).
"""

from __future__ import annotations


class BusinessError(ValueError):
    """400-level business rule violation."""

    code = "BUSINESS_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BusinessError):
    """Malformed or missing input."""
    code = "VALIDATION_ERROR"


class NotFound(BusinessError):
    code = "NOT_FOUND"
    http_status = 404


class UnknownProduct(BusinessError):
    code = "UNKNOWN_PRODUCT"


class InsufficientStock(BusinessError):
    code = "INSUFFICIENT_STOCK"


class InvalidQuantity(BusinessError):
    code = "INVALID_QUANTITY"


class EmptySale(BusinessError):
    code = "EMPTY_SALE"


class CustomerRequired(BusinessError):
    code = "CUSTOMER_REQUIRED"


class CustomerNotFound(BusinessError):
    code = "CUSTOMER_NOT_FOUND"


class CreditRequiresCustomer(BusinessError):
    code = "CREDIT_REQUIRES_CUSTOMER"


class CreditLimitExceeded(BusinessError):
    code = "CREDIT_LIMIT_EXCEEDED"


class PaymentExceedsPending(BusinessError):
    """A payment applied to a sale is larger than what is still owed on it."""
    code = "PAYMENT_EXCEEDS_PENDING"


class ConcurrentModification(BusinessError):
    """The record changed between form load and submit; caller must reload."""
    code = "CONCURRENT_MODIFICATION"
    http_status = 409


class DuplicateSku(BusinessError):
    code = "DUPLICATE_SKU"
    http_status = 409


class DuplicateBarcode(BusinessError):
    code = "DUPLICATE_BARCODE"
    http_status = 409


class SaleValidationError(BusinessError):
    """All line-level and sale-level errors collected for one sale attempt."""

    code = "SALE_VALIDATION_FAILED"

    def __init__(self, errors: list[BusinessError]):
        super().__init__("Sale validation failed", details={"count": len(errors)})
        self.errors = list(errors)

    @property
    def codes(self) -> list[str]:
        return [e.code for e in self.errors]

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["errors"] = [e.to_dict() for e in self.errors]
        return payload


def error_body(exc: BusinessError) -> dict:
    """JSON body for a business error: {"error": message, "code": ..., ...}."""
    body = {"error": exc.message}
    body.update(exc.to_dict())
    return body
