"""Domain exceptions raised by the booking services."""


class BookingError(Exception):
    """Base class for booking service failures."""


class BookingValidationError(BookingError):
    """A required field is missing or a value is not acceptable."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class BookingNotFoundError(BookingError):
    """Update or delete targeted a booking id that does not exist."""

    def __init__(self, booking_id):
        super().__init__(f"Booking #{booking_id} not found.")
        self.booking_id = booking_id


class BookingConflictError(BookingError):
    """The staff already has an overlapping booking."""

    def __init__(self, staff, conflict):
        self.staff = staff
        self.conflict = conflict
        super().__init__(
            f"Time conflict: {staff} already has booking #{conflict.pk} "
            f"at {conflict.start_time:%Y-%m-%d %H:%M}."
        )

    @property
    def conflict_id(self):
        return self.conflict.pk

    @property
    def conflict_start(self):
        return self.conflict.start_time


class BookingPersistenceError(BookingError):
    """The booking store failed; the write did not happen."""
