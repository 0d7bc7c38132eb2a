# backend/fisio_booking/errors.py
"""
Booking error taxonomy.

"No availability" is never an error: the slot generator returns an empty list.
Everything here is raised past the core and turned into an HTTP status by the
routers.
"""


class BookingError(Exception):
    """Base class for booking errors."""

    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class BookingValidationError(BookingError):
    """Request rejected before any write (bad times, too short, overlaps)."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class SlotConflictError(BookingError):
    """The chosen slot is not free any more. The client must re-fetch slots."""

    error_code = "SLOT_CONFLICT"

    def __init__(self, message: str = "This time slot was just booked. Please choose another one."):
        super().__init__(message)


class TransientQueryFailure(BookingError):
    """A read needed for availability timed out or failed."""

    retryable = True


class AtomicInsertTechnicalError(BookingError):
    """The atomic insert failed for a reason other than a slot conflict."""

    retryable = True
