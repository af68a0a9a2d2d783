"""
Error taxonomy for the cart-to-order pipeline

Every failure that reaches a customer or an operator is one of these.
They carry a stable error code and itemized details so the API layer can
render the same envelope everywhere:

    {"error": true, "code": "STOCK_CONFLICT", "message": "...", "details": {...}}

Author: TM3
Date: 2025-12-02
"""
from typing import Any, Dict, List, Optional


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    error_code = "SERVER_ERROR"
    default_message = "An unexpected error occurred. Please try again later."
    http_status = 500

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": True,
            "code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(StorefrontError):
    """Missing or malformed input. Corrected in place, never fatal."""

    error_code = "VALIDATION_ERROR"
    default_message = "Invalid input data."
    http_status = 400

    def __init__(self, message: Optional[str] = None, fields: Optional[List[str]] = None):
        self.fields = list(fields or [])
        details = {"fields": self.fields} if self.fields else None
        super().__init__(message, details)


class OutOfStock(StorefrontError):
    """Requested quantity exceeds the locally-known stock for a cart line."""

    error_code = "OUT_OF_STOCK"
    default_message = "Requested quantity is not available."
    http_status = 409

    def __init__(self, product_id: str, size: str, requested: int, available: int):
        self.product_id = product_id
        self.size = size
        self.requested = requested
        self.available = available
        super().__init__(
            f"Only {available} unit(s) of {product_id} in size {size} available, requested {requested}",
            {
                "product_id": product_id,
                "size": size,
                "requested": requested,
                "available": available,
            },
        )


class StockConflict(StorefrontError):
    """Authoritative stock cannot fulfil one or more lines at checkout."""

    error_code = "STOCK_CONFLICT"
    default_message = "Some items in your cart are no longer available."
    http_status = 409

    def __init__(self, verdicts: List[Any], message: Optional[str] = None):
        # StockVerdict models (domain.checkout)
        self.verdicts = list(verdicts)
        super().__init__(
            message or self.default_message,
            {"items": [v.to_dict() for v in self.verdicts]},
        )

    @property
    def reasons(self) -> List[str]:
        """Human-readable, one line per failing item"""
        return [v.message for v in self.verdicts]


class PersistenceError(StorefrontError):
    """The store is unreachable or rejected the write."""

    error_code = "PERSISTENCE_ERROR"
    default_message = "We could not reach the store. Please try again."
    http_status = 503


class DuplicateSubmission(StorefrontError):
    """A second placement was attempted while one is in flight.

    The commit control is disabled during placement, so seeing this is a defect.
    """

    error_code = "DUPLICATE_SUBMISSION"
    default_message = "An order is already being placed for this cart."
    http_status = 409


class NotificationSyncError(StorefrontError):
    """The live order feed failed. Known notifications are kept."""

    error_code = "NOTIFICATION_SYNC_ERROR"
    default_message = "Failed to connect to notification system. Please try again."
    http_status = 503


class NotFound(StorefrontError):
    error_code = "NOT_FOUND"
    default_message = "The requested resource was not found."
    http_status = 404


class AuthorizationError(StorefrontError):
    error_code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action."
    http_status = 403
