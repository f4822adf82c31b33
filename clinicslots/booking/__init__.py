"""Booking integrity engine: availability, ledger, policy and penalties."""

from clinicslots.booking.errors import (
    BookingError,
    InvalidStatusTransition,
    NotFound,
    PersistenceError,
    PolicyViolation,
    SlotConflict,
    ValidationError,
)

__all__ = [
    "BookingError",
    "SlotConflict",
    "PolicyViolation",
    "NotFound",
    "ValidationError",
    "InvalidStatusTransition",
    "PersistenceError",
]
