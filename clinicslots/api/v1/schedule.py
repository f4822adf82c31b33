"""Department schedule endpoints."""

from datetime import date

from fastapi import APIRouter, Query
from pydantic import BaseModel

from clinicslots.api.deps import CurrentSession, Scheduling, SessionContext
from clinicslots.booking.calendar import DEFAULT_SCHEDULE_DAYS, DaySchedule, SlotView, mask_identifier
from clinicslots.services.scheduling import MAX_SCHEDULE_DAYS

router = APIRouter()


class SlotResponse(BaseModel):
    """One numbered slot."""

    slot_number: int
    label: str
    available: bool
    is_non_working_day: bool
    client_id: str | None = None
    client_x_number: str | None = None
    appointment_id: str | None = None


class DayScheduleResponse(BaseModel):
    """All slots of one date."""

    date: date
    day_name: str
    label: str
    is_working_day: bool
    has_availability: bool
    slots: list[SlotResponse]


def _slot_response(slot: SlotView, context: SessionContext) -> SlotResponse:
    """Staff see who holds a slot; clients only recognise their own bookings."""
    if context.is_staff or slot.client_id is None or slot.client_id == context.actor_id:
        return SlotResponse(
            slot_number=slot.slot_number,
            label=slot.label,
            available=slot.available,
            is_non_working_day=slot.is_non_working_day,
            client_id=slot.client_id,
            client_x_number=slot.client_x_number,
            appointment_id=slot.appointment_id,
        )

    return SlotResponse(
        slot_number=slot.slot_number,
        label=slot.label,
        available=slot.available,
        is_non_working_day=slot.is_non_working_day,
        client_x_number=mask_identifier(slot.client_x_number),
    )


def _day_response(day: DaySchedule, context: SessionContext) -> DayScheduleResponse:
    return DayScheduleResponse(
        date=day.date,
        day_name=day.day_name,
        label=day.label,
        is_working_day=day.is_working_day,
        has_availability=day.has_availability,
        slots=[_slot_response(slot, context) for slot in day.slots],
    )


@router.get(
    "",
    response_model=list[DayScheduleResponse],
    summary="Slot availability of a department",
)
async def get_schedule(
    context: CurrentSession,
    scheduling: Scheduling,
    department_id: str = Query(...),
    start_date: date | None = Query(None, description="Defaults to today"),
    days: int = Query(DEFAULT_SCHEDULE_DAYS, ge=1, le=MAX_SCHEDULE_DAYS),
) -> list[DayScheduleResponse]:
    """Get day-by-day slot availability, a week from `start_date` by default."""
    schedule = await scheduling.get_schedule(department_id, start_date, days)
    return [_day_response(day, context) for day in schedule]
