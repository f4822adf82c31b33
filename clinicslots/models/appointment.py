"""Appointment model and status lifecycle.

An appointment holds one numbered slot of a department on one calendar
date. Rows are never deleted; cancelling or marking a no-show frees the
slot by status alone.
"""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from clinicslots.booking.errors import InvalidStatusTransition
from clinicslots.db.base import Base, TimestampMixin
from clinicslots.utils.time import utc_now


class AppointmentStatus(str, Enum):
    """Status of an appointment."""

    BOOKED = "booked"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


# Statuses that give the slot back for re-booking
SLOT_FREEING_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})

# Statuses that no longer count towards a client's pending quotas
TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    }
)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.BOOKED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.ARRIVED,
            AppointmentStatus.WAITING,
            AppointmentStatus.NO_SHOW,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.RESCHEDULED,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {
            AppointmentStatus.ARRIVED,
            AppointmentStatus.WAITING,
            AppointmentStatus.NO_SHOW,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.RESCHEDULED,
        }
    ),
    AppointmentStatus.ARRIVED: frozenset(
        {
            AppointmentStatus.WAITING,
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.WAITING: frozenset(
        {
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.RESCHEDULED: frozenset(),
}


def occupies_slot(status: AppointmentStatus | str) -> bool:
    """Check whether an appointment in `status` holds its slot."""
    return AppointmentStatus(status) not in SLOT_FREEING_STATUSES


def is_non_terminal(status: AppointmentStatus | str) -> bool:
    """Check whether an appointment in `status` is still in flight."""
    return AppointmentStatus(status) not in TERMINAL_STATUSES


def can_transition(current: AppointmentStatus, new: AppointmentStatus) -> bool:
    """Check whether `current` may move to `new`."""
    return new in ALLOWED_TRANSITIONS[current]


class Appointment(Base, TimestampMixin):
    """A booked slot for a client in a department."""

    __tablename__ = "appointments"
    __table_args__ = (
        # At most one slot-holding booking per department/date/slot.
        # This index is the only guard against double booking.
        Index(
            "uq_appointments_active_slot",
            "department_id",
            "appointment_date",
            "slot_number",
            unique=True,
            postgresql_where=text("status NOT IN ('cancelled', 'no_show')"),
            sqlite_where=text("status NOT IN ('cancelled', 'no_show')"),
        ),
        Index("ix_appointments_client_status", "client_id", "status"),
    )

    client_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    department_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("departments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # Optional specific doctor; doctor calendars are not managed here
    doctor_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    appointment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )
    slot_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    # Start of the slot, derived from department working hours at booking
    scheduled_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        SAEnum(
            AppointmentStatus,
            native_enum=False,
            length=30,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=AppointmentStatus.BOOKED,
        nullable=False,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    booked_by: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_by: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment {self.id[:8]}... {self.appointment_date} "
            f"slot={self.slot_number} status={self.status.value}>"
        )


def transition_status(
    appointment: Appointment,
    new_status: AppointmentStatus,
    changed_by: str | None = None,
    reason: str | None = None,
    at: datetime | None = None,
) -> bool:
    """Apply a status change, enforcing the transition table.

    Re-applying the current status is a no-op so repeated cancels are
    harmless.

    Returns:
        True if the status changed, False for a no-op

    Raises:
        InvalidStatusTransition: If the move is not in the transition table
    """
    current = AppointmentStatus(appointment.status)
    new_status = AppointmentStatus(new_status)

    if current == new_status:
        return False

    if not can_transition(current, new_status):
        raise InvalidStatusTransition(
            f"Cannot change appointment status from {current.value} to {new_status.value}"
        )

    appointment.status = new_status

    if new_status == AppointmentStatus.CANCELLED:
        appointment.cancelled_at = at or utc_now()
        appointment.cancelled_by = changed_by
        appointment.cancellation_reason = reason

    return True

