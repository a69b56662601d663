# Overview: Typed error taxonomy shared by services and routes.

"""
Error taxonomy for checkout and its collaborators.

Every error carries a human-readable message, a machine-readable code, the
HTTP status the API boundary maps it to, and a details dict identifying the
offending line item or resource.

PROPAGATION: any PosError raised inside a checkout unit of work aborts the
whole unit of work. Only ConflictError is produced by the retry loop itself,
after storage-level conflicts have exhausted the retry budget.
"""


class PosError(Exception):
    """Base class for domain errors surfaced to API callers."""
    status_code = 500
    code = "POS_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(PosError):
    """400-level input problem. Raised before any storage access."""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(PosError):
    """Referenced product, customer or bill does not exist in the store."""
    status_code = 404
    code = "NOT_FOUND"


class InsufficientStockError(PosError):
    """Requested quantity exceeds the product's quantity on hand."""
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, *, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class ConflictError(PosError):
    """Storage-level write conflict that survived the retry budget."""
    status_code = 409
    code = "CONFLICT"


class PersistenceError(PosError):
    """Any other storage failure (connection loss, constraint violation)."""
    status_code = 500
    code = "PERSISTENCE_ERROR"


class ImmutableRecordError(PosError):
    """Attempt to update or delete a write-once record (Bill, BillLineItem)."""
    status_code = 409
    code = "IMMUTABLE_RECORD"


class AuthError(PosError):
    status_code = 401
    code = "AUTH_REQUIRED"


class FeatureGateError(PosError):
    """Subscription missing/inactive or plan quota reached."""
    status_code = 403
    code = "FEATURE_LIMIT_REACHED"

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        if code:
            self.code = code
