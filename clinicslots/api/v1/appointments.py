"""Appointment booking endpoints."""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from clinicslots.api.deps import (
    CurrentSession,
    Scheduling,
    SessionContext,
    StaffSession,
    ensure_can_act_for,
)
from clinicslots.models.appointment import AppointmentStatus
from clinicslots.services.scheduling import BookingRequest

router = APIRouter()


# ============================================================================
# Request/Response Schemas
# ============================================================================


class BookAppointmentRequest(BaseModel):
    """Request to book a slot."""

    client_id: str
    department_id: str
    appointment_date: date = Field(alias="date")
    slot_number: int
    doctor_id: UUID | None = None
    notes: str | None = Field(None, max_length=2000)

    class Config:
        populate_by_name = True

    def to_booking_request(self, context: SessionContext) -> BookingRequest:
        return BookingRequest(
            client_id=self.client_id,
            department_id=self.department_id,
            appointment_date=self.appointment_date,
            slot_number=self.slot_number,
            booked_by=context.actor_id,
            doctor_id=str(self.doctor_id) if self.doctor_id else None,
            notes=self.notes,
        )


class AppointmentResponse(BaseModel):
    """Appointment response."""

    id: str
    client_id: str
    department_id: str
    doctor_id: str | None
    appointment_date: date
    slot_number: int
    scheduled_start: datetime | None
    status: AppointmentStatus
    notes: str | None
    booked_by: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class BookingResponse(AppointmentResponse):
    """Newly booked appointment with advisory warnings."""

    warnings: list[str] = []
    client_score: float | None = None


class ValidationResponse(BaseModel):
    """Booking rule check result."""

    can_book: bool
    restrictions: list[str]
    warnings: list[str]
    client_score: float | None
    penalty_end_date: date | None


class UpdateStatusRequest(BaseModel):
    """Request to move an appointment to another status."""

    status: AppointmentStatus
    reason: str | None = Field(None, max_length=1000)


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=BookingResponse,
    summary="Book a slot",
)
async def book_appointment(
    request: BookAppointmentRequest,
    context: CurrentSession,
    scheduling: Scheduling,
) -> BookingResponse:
    """Book a department slot.

    Clients may only book for themselves. Rule violations return 422 with
    the full list of restrictions; losing a race for the slot returns 409.
    """
    ensure_can_act_for(context, request.client_id)

    result = await scheduling.book_appointment(request.to_booking_request(context))

    response = BookingResponse.model_validate(result.appointment)
    response.warnings = result.warnings
    response.client_score = result.client_score
    return response


@router.post(
    "/validate",
    response_model=ValidationResponse,
    summary="Check booking rules without booking",
)
async def validate_booking(
    request: BookAppointmentRequest,
    context: CurrentSession,
    scheduling: Scheduling,
) -> ValidationResponse:
    ensure_can_act_for(context, request.client_id)

    result = await scheduling.validate(request.to_booking_request(context))

    return ValidationResponse(
        can_book=result.can_book,
        restrictions=result.restrictions,
        warnings=result.warnings,
        client_score=result.client_score,
        penalty_end_date=result.penalty_end_date,
    )


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
)
async def get_appointment(
    appointment_id: str,
    context: CurrentSession,
    scheduling: Scheduling,
) -> AppointmentResponse:
    appointment = await scheduling.get_appointment(appointment_id)
    ensure_can_act_for(context, appointment.client_id)
    return AppointmentResponse.model_validate(appointment)


@router.delete(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    summary="Cancel an appointment",
)
async def cancel_appointment(
    appointment_id: str,
    context: CurrentSession,
    scheduling: Scheduling,
    reason: str | None = Query(None, max_length=1000),
) -> AppointmentResponse:
    """Cancel an appointment and free its slot.

    Cancelling twice returns the cancelled appointment again.
    """
    appointment = await scheduling.get_appointment(appointment_id)
    ensure_can_act_for(context, appointment.client_id)

    appointment = await scheduling.cancel_appointment(
        appointment_id,
        cancelled_by=context.actor_id,
        reason=reason,
    )
    return AppointmentResponse.model_validate(appointment)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    summary="Update appointment status (staff)",
)
async def update_appointment_status(
    appointment_id: str,
    request: UpdateStatusRequest,
    staff: StaffSession,
    scheduling: Scheduling,
) -> AppointmentResponse:
    appointment = await scheduling.update_status(
        appointment_id,
        request.status,
        changed_by=staff.actor_id,
        reason=request.reason,
    )
    return AppointmentResponse.model_validate(appointment)
