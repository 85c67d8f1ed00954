"""Booking error taxonomy.

Every error here is user-facing and recoverable. Each carries a stable
``code`` for clients and the HTTP status the routers answer with.
"""


class BookingError(Exception):
    code = "error"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(BookingError):
    """Actor lacks the required role or tenant association"""

    code = "unauthorized"
    status_code = 403
    default_message = "Not authorized"


class NotFoundOrAlreadyProcessed(BookingError):
    """A status-guarded update matched no row.

    The guarded query cannot tell a missing booking from one in the wrong
    status, so state-machine violations surface as this error too.
    """

    code = "not_found_or_already_processed"
    status_code = 404
    default_message = "Booking not found or already processed"


class ValidationError(BookingError):
    code = "validation_error"
    status_code = 422
    default_message = "Invalid input"


class Conflict(BookingError):
    """Requested time overlaps an existing booking"""

    code = "conflict"
    status_code = 409
    default_message = "This time slot is no longer available"


class RateLimited(BookingError):
    code = "rate_limited"
    status_code = 429
    default_message = "Too many requests. Please try again later."
