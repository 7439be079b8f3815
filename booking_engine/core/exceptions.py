# booking_engine/core/exceptions.py
"""
Typed errors raised by the booking engine.

Every error carries a stable ``code`` so that clients can present a precise
message ("this field changed since you last viewed it") instead of a generic
failure. None of these are retryable: the caller either reloads and retries
with fresh data, or the booking is in a state that will not change.
"""
from typing import Optional


class BookingError(Exception):
    """Base class for booking engine errors."""

    code = "booking_error"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class NotFoundError(BookingError):
    code = "not_found"


class InvalidStateError(BookingError):
    code = "invalid_state"

    def __init__(self, message: str, current_status: Optional[str] = None):
        self.current_status = current_status
        super().__init__(message)


class WrongPartyError(BookingError):
    code = "wrong_party"


class ConflictError(BookingError):
    code = "stale_proposal"

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        current_value: Optional[str] = None,
    ):
        self.field_name = field_name
        self.current_value = current_value
        super().__init__(message)


class ValidationError(BookingError):
    code = "validation_error"

    def __init__(self, message: str, field_name: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message)
