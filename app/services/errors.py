"""Domain errors raised by the booking, inventory and payment services."""


class BookingError(Exception):
    """Base domain error carrying an HTTP status and a stable error code."""

    status_code = 400
    code = "BOOKING_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Raised on missing or invalid input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(BookingError):
    """Raised when an event, ticket or booking does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(BookingError):
    """Raised when the caller may not act on a booking."""

    status_code = 403
    code = "FORBIDDEN"


class SoldOutError(BookingError):
    """Raised when a ticket type has fewer units left than requested."""

    status_code = 409
    code = "SOLD_OUT"


class CapacityExceededError(SoldOutError):
    """Raised when committing a sale would push sold units past capacity."""

    code = "CAPACITY_EXCEEDED"


class InvalidBookingStateError(BookingError):
    """Raised on a status transition the booking lifecycle does not allow."""

    status_code = 409
    code = "INVALID_STATE"


class BookingExpiredError(InvalidBookingStateError):
    """Raised when a hold is settled after its window closed."""

    code = "BOOKING_EXPIRED"


class DuplicatePaymentError(InvalidBookingStateError):
    """Raised when a booking already carries a successful payment."""

    code = "DUPLICATE_PAYMENT"


class ReconciliationError(BookingError):
    """Raised after an unexpected failure inside the payment unit was rolled back."""

    status_code = 500
    code = "INTERNAL_ERROR"
