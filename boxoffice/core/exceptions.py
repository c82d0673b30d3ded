"""
Domain exceptions for the box office.

Services raise these instead of HTTPException so the same code paths can run
from the sweeper and from tests. A single handler in main.py turns them into
JSON responses of the form {"message": ..., **details}.
"""

from typing import Any, Optional

from fastapi import status


class BoxOfficeError(Exception):
    """Base exception carrying an HTTP status and a structured payload."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, **self.details}


class BoxOfficeValidationError(BoxOfficeError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BoxOfficeError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource.capitalize()} {resource_id} not found",
            details={"resource": resource, "resource_id": str(resource_id)},
        )


class EventNotFoundError(NotFoundError):
    def __init__(self, event_id: Any):
        super().__init__("event", event_id)


class CouponNotFoundError(NotFoundError):
    def __init__(self, coupon_id: Any):
        super().__init__("coupon", coupon_id)


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: Any):
        super().__init__("order", order_id)


class TicketNotFoundError(NotFoundError):
    def __init__(self, ticket_id: Any):
        super().__init__("ticket", ticket_id)


class SeatConflictError(BoxOfficeError):
    """One or more seats cannot be sold; the whole order is rejected."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, conflicts: list[dict[str, str]], transaction_id: Optional[str] = None):
        details: dict[str, Any] = {"conflicts": conflicts}
        if transaction_id:
            details["transaction_id"] = transaction_id
        super().__init__("Some seats are not available", details=details)
        self.conflicts = conflicts


class CouponError(BoxOfficeError):
    """Coupon rejected during explicit validation."""

    status_code = status.HTTP_400_BAD_REQUEST


class CouponConflictError(BoxOfficeError):
    """Coupon no longer applies at commit time (expired, exhausted, not applicable)."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, code: Optional[str] = None, transaction_id: Optional[str] = None):
        details: dict[str, Any] = {}
        if code:
            details["coupon_code"] = code
        if transaction_id:
            details["transaction_id"] = transaction_id
        super().__init__(message, details=details)


class ConcurrencyConflictError(BoxOfficeError):
    """The event document kept changing underneath us; the client should re-fetch and retry."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, event_id: Any, attempts: int):
        super().__init__(
            "Seat inventory changed concurrently, please try again",
            details={"event_id": str(event_id), "attempts": attempts},
        )


class PaymentError(BoxOfficeError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class OrderPersistenceError(BoxOfficeError):
    """Payment was taken but the order could not be stored; reconcile by transaction id."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, transaction_id: Optional[str] = None):
        details: dict[str, Any] = {}
        if transaction_id:
            details["transaction_id"] = transaction_id
        super().__init__("Order could not be saved after payment", details=details)


class ServiceChargeNotFoundError(NotFoundError):
    def __init__(self, charge_id: Any):
        super().__init__("service charge", charge_id)
