"""Booking error taxonomy.

Each exception maps to one HTTP outcome in the API layer:

- SlotConflict      -> 409 (a race was lost; pick another slot or retry)
- PolicyViolation   -> 422 (carries every unmet restriction)
- NotFound          -> 404
- ValidationError   -> 400
- PersistenceError  -> 500 (transient; retry with backoff)
"""

from datetime import date


class BookingError(Exception):
    """Base class for booking core errors."""

    pass


class SlotConflict(BookingError):
    """Raised when the requested slot is already held by an active booking.

    Only the ledger raises this, and only when the database uniqueness
    guard rejects the insert.
    """

    def __init__(
        self,
        department_id: str,
        appointment_date: date,
        slot_number: int,
    ) -> None:
        self.department_id = department_id
        self.appointment_date = appointment_date
        self.slot_number = slot_number
        super().__init__(
            f"Slot {slot_number} on {appointment_date.isoformat()} is no longer available"
        )


class PolicyViolation(BookingError):
    """Raised when a booking request breaks one or more booking rules."""

    def __init__(self, restrictions: list[str]) -> None:
        self.restrictions = list(restrictions)
        super().__init__("; ".join(self.restrictions) or "Booking not allowed")


class NotFound(BookingError):
    """Raised when a department, client or appointment does not exist."""

    pass


class ValidationError(BookingError):
    """Raised for malformed input such as an out-of-range slot number."""

    pass


class InvalidStatusTransition(ValidationError):
    """Raised when an appointment status change is not allowed."""

    pass


class PersistenceError(BookingError):
    """Raised when the database fails for reasons other than a slot conflict."""

    pass
