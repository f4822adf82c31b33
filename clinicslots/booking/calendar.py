"""Slot availability calendar.

Pure functions that turn a department's configuration and its bookings into
a day-by-day, slot-by-slot availability view. Nothing here touches the
database or the clock; callers pass in bookings and "today".

All date logic works on calendar dates (``datetime.date``), never on
instants, so a booking on 2025-06-01 is on 2025-06-01 whatever timezone
the process runs in.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any

from clinicslots.models.appointment import occupies_slot
from clinicslots.models.department import WEEKDAY_NAMES

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

DEFAULT_SCHEDULE_DAYS = 7


@dataclass
class SlotView:
    """Availability of a single numbered slot.

    Occupied slots expose the real client identifiers; redacting them is up
    to the presentation layer (see `mask_identifier`).
    """

    slot_number: int
    label: str
    available: bool
    is_non_working_day: bool = False
    client_id: str | None = None
    client_x_number: str | None = None
    appointment_id: str | None = None


@dataclass
class DaySchedule:
    """All slots of one department on one calendar date."""

    date: date
    day_name: str
    label: str
    is_working_day: bool
    slots: list[SlotView] = field(default_factory=list)
    has_availability: bool = False

    @property
    def available_slot_numbers(self) -> list[int]:
        return [s.slot_number for s in self.slots if s.available]


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def weekday_name(day: date) -> str:
    """Return the lowercase weekday name of `day` ("monday" ... "sunday")."""
    return WEEKDAY_NAMES[_as_date(day).weekday()]


def is_working_day(department: Any, day: date) -> bool:
    """Check if `day` falls on one of the department's working days."""
    working_days = getattr(department, "working_days", None)
    if not working_days:
        return False

    return weekday_name(day) in {d.strip().lower() for d in working_days}


def date_range(start: date, days: int) -> list[date]:
    """Return `days` consecutive dates starting at `start`."""
    start = _as_date(start)
    return [start + timedelta(days=offset) for offset in range(days)]


def week_range(start: date) -> list[date]:
    """Return the seven dates starting at `start`."""
    return date_range(start, DEFAULT_SCHEDULE_DAYS)


def is_past_date(day: date, today: date) -> bool:
    """Check if `day` is before `today`."""
    return _as_date(day) < _as_date(today)


def is_valid_booking_date(department: Any, day: date, today: date) -> bool:
    """Check that `day` is not in the past and is a working day."""
    return not is_past_date(day, today) and is_working_day(department, day)


def _occupied_slots(
    department_id: str,
    bookings: Iterable[Any],
    day: date,
) -> dict[int, Any]:
    """Map slot number to the booking holding it on `day`."""
    occupied: dict[int, Any] = {}

    for booking in bookings:
        if booking.department_id != department_id:
            continue
        if _as_date(booking.appointment_date) != day:
            continue
        if not occupies_slot(booking.status):
            continue
        occupied.setdefault(booking.slot_number, booking)

    return occupied


def _day_label(day: date) -> str:
    return f"{MONTH_ABBREVIATIONS[day.month - 1]} {day.day}"


def build_day(department: Any, bookings: Iterable[Any], day: date) -> DaySchedule:
    """Build the availability view of a single date."""
    day = _as_date(day)
    working = is_working_day(department, day)
    slot_numbers = range(1, department.slots_per_day + 1)

    if not working:
        slots = [
            SlotView(
                slot_number=n,
                label=f"Slot {n}",
                available=False,
                is_non_working_day=True,
            )
            for n in slot_numbers
        ]
        return DaySchedule(
            date=day,
            day_name=weekday_name(day).capitalize(),
            label=_day_label(day),
            is_working_day=False,
            slots=slots,
            has_availability=False,
        )

    occupied = _occupied_slots(department.id, bookings, day)
    slots = []

    for n in slot_numbers:
        booking = occupied.get(n)
        if booking is None:
            slots.append(SlotView(slot_number=n, label=f"Slot {n}", available=True))
        else:
            slots.append(
                SlotView(
                    slot_number=n,
                    label=f"Slot {n}",
                    available=False,
                    client_id=booking.client_id,
                    client_x_number=getattr(booking, "client_x_number", None),
                    appointment_id=getattr(booking, "id", None),
                )
            )

    return DaySchedule(
        date=day,
        day_name=weekday_name(day).capitalize(),
        label=_day_label(day),
        is_working_day=True,
        slots=slots,
        has_availability=any(s.available for s in slots),
    )


def build_schedule(
    department: Any,
    bookings: Iterable[Any],
    dates: Iterable[date],
    today: date | None = None,
) -> list[DaySchedule]:
    """Build the availability view for every date in `dates`.

    Args:
        department: Object exposing ``id``, ``slots_per_day`` and ``working_days``
        bookings: Objects exposing ``department_id``, ``appointment_date``,
            ``slot_number``, ``status`` and ``client_id`` (``client_x_number``
            and ``id`` are used when present)
        dates: Calendar dates to render, in order
        today: When given, the entry for this date is named "Today"

    Returns:
        One DaySchedule per input date
    """
    bookings = list(bookings)
    schedule = []

    for day in dates:
        entry = build_day(department, bookings, day)
        if today is not None and entry.date == _as_date(today):
            entry.day_name = "Today"
        schedule.append(entry)

    return schedule


def available_slot_numbers(department: Any, bookings: Iterable[Any], day: date) -> list[int]:
    """Return the free slot numbers of `day` (empty on non-working days)."""
    return build_day(department, bookings, day).available_slot_numbers


def slot_start(department: Any, day: date, slot_number: int, tz: tzinfo) -> datetime:
    """Return the start time of a slot.

    Slots are spread evenly across the department's working hours; slot 1
    starts when the department opens.
    """
    opens: time = department.working_hours_start
    closes: time = department.working_hours_end
    day = _as_date(day)

    opening = datetime.combine(day, opens, tzinfo=tz)
    closing = datetime.combine(day, closes, tzinfo=tz)
    span = max(closing - opening, timedelta(0))
    per_slot = span / department.slots_per_day

    return opening + per_slot * (slot_number - 1)


def mask_identifier(value: str | None, visible: int = 3) -> str | None:
    """Redact all but the last `visible` characters of an identifier."""
    if not value:
        return value
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]
