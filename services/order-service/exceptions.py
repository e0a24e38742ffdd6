"""Order domain errors.

Raised by the service layer where a rule is violated and turned into an
HTTP response by the handler registered in ``main``.
"""
from typing import Optional


class OrderServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(OrderServiceError):
    """Order, product or cart does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(OrderServiceError):
    """Requester does not own the resource."""

    status_code = 403
    code = "FORBIDDEN"


class InvalidInputError(OrderServiceError):
    """Request cannot be applied to the current state."""

    status_code = 400
    code = "INVALID_INPUT"


class OrderConflictError(InvalidInputError):
    """Order is no longer in the status the operation requires."""

    code = "ORDER_CONFLICT"


class UpstreamRejectedError(InvalidInputError):
    """Payment gateway declined or failed the confirmation."""

    code = "PAYMENT_REJECTED"

    def __init__(self, message: str, provider_code: Optional[str] = None):
        super().__init__(message)
        self.provider_code = provider_code


class GatewayUnavailableError(OrderServiceError):
    """Payment gateway could not be reached in time. Safe to retry."""

    status_code = 503
    code = "GATEWAY_UNAVAILABLE"


class PaymentNotRecordedError(OrderServiceError):
    """Gateway settled the payment but the local commit failed."""

    status_code = 500
    code = "PAYMENT_NOT_RECORDED"


class UnreadableReceiptError(OrderServiceError):
    """Gateway answered with success but its receipt could not be parsed.

    The payment is settled on the provider side. ``receipt`` holds what is
    known from the request so the payment can be reconciled.
    """

    status_code = 502
    code = "RECEIPT_INVALID"

    def __init__(self, message: str, receipt=None):
        super().__init__(message)
        self.receipt = receipt
