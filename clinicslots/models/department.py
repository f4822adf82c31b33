"""Department model: bookable units with a fixed daily slot capacity."""

from datetime import time

from sqlalchemy import JSON, Boolean, CheckConstraint, Integer, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column

from clinicslots.db.base import Base, TimestampMixin

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class Department(Base, TimestampMixin):
    """Clinic department with configurable daily capacity and calendar.

    Slots are numbered 1..slots_per_day and spread evenly over the
    working hours of each working day.
    """

    __tablename__ = "departments"
    __table_args__ = (
        CheckConstraint("slots_per_day >= 1", name="slots_per_day_positive"),
    )

    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
        unique=True,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    slots_per_day: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=10,
    )
    # Lowercase weekday names, e.g. ["monday", "tuesday"]
    working_days: Mapped[list[str]] = mapped_column(
        JSON,
        default=lambda: list(WEEKDAY_NAMES[:5]),
        nullable=False,
    )
    working_hours_start: Mapped[time] = mapped_column(
        Time,
        default=time(8, 0),
        nullable=False,
    )
    working_hours_end: Mapped[time] = mapped_column(
        Time,
        default=time(17, 0),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Department {self.name} slots={self.slots_per_day}>"
