from __future__ import annotations


class DomainError(Exception):
    """
    Base class for every error the billing/ledger core reports to its caller.

    Services raise these before touching state wherever possible; anything
    raised inside a `transaction.atomic()` block rolls the block back.
    """

    code = "domain_error"

    def __init__(self, message: str = "", *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def as_dict(self) -> dict:
        payload = {"code": self.code, "detail": self.message}
        if self.details:
            payload["errors"] = self.details
        return payload


class ValidationError(DomainError):
    code = "validation_error"

    @classmethod
    def from_serializer(cls, serializer) -> "ValidationError":
        return cls("Invalid payload.", details=dict(serializer.errors))


class NotFound(DomainError):
    code = "not_found"


class InsufficientStock(DomainError):
    code = "insufficient_stock"

    def __init__(self, message: str = "", *, product_id=None, requested: int = 0, available: int = 0):
        super().__init__(
            message or "Insufficient stock.",
            details={"product_id": product_id, "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InactiveProduct(DomainError):
    code = "inactive_product"

    def __init__(self, message: str = "", *, product_id=None):
        super().__init__(message or "Product is inactive.", details={"product_id": product_id})
        self.product_id = product_id


class OverpaymentRejected(DomainError):
    code = "overpayment_rejected"


class ConcurrencyConflict(DomainError):
    """The atomic update lost a race; retry the whole operation."""

    code = "concurrency_conflict"
