"""Scheduling service: the single entry point used by the API.

Wires the booking core together per request:

    validate -> reserve -> invalidate cached schedule -> notify

and applies penalties after cancellations and no-shows.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from clinicslots.booking.calendar import (
    DEFAULT_SCHEDULE_DAYS,
    DaySchedule,
    build_schedule,
    date_range,
    slot_start,
)
from clinicslots.booking.errors import NotFound, PolicyViolation, ValidationError
from clinicslots.booking.ledger import BookingLedger
from clinicslots.booking.penalties import PenaltyEscalationManager, RestrictionStatus
from clinicslots.booking.policy import BookingPolicyEngine, BookingValidationResult
from clinicslots.booking.rules import (
    BookingRules,
    BookingRulesProvider,
    DatabaseSettingsStore,
)
from clinicslots.booking.scoring import ClientReliabilityScore, ClientReliabilityScorer
from clinicslots.core.logging import audit_logger
from clinicslots.models.appointment import Appointment, AppointmentStatus
from clinicslots.models.client import Client
from clinicslots.models.department import Department
from clinicslots.models.penalty import ClientPenalty, PenaltyType
from clinicslots.services.notifications import (
    LoggingNotificationSender,
    NotificationSender,
    booking_confirmation_message,
    notify,
)
from clinicslots.services.schedule_cache import ScheduleCache
from clinicslots.utils.time import as_utc, clinic_now

logger = logging.getLogger(__name__)

MAX_SCHEDULE_DAYS = 31


@dataclass
class BookingRequest:
    """A request to book one slot for one client."""

    client_id: str
    department_id: str
    appointment_date: date
    slot_number: int
    booked_by: str | None = None
    doctor_id: str | None = None
    notes: str | None = None


@dataclass
class BookingResult:
    """A successful booking and the advisory warnings raised while checking it."""

    appointment: Appointment
    warnings: list[str] = field(default_factory=list)
    client_score: float | None = None


@dataclass
class ClientStanding:
    """Reliability score and penalty state of a client."""

    client_id: str
    score: ClientReliabilityScore
    restriction: RestrictionStatus
    penalties: Sequence[ClientPenalty]


def is_late_cancellation(appointment: Appointment, min_cancel_hours: float) -> bool:
    """Check if a cancellation happened within `min_cancel_hours` of the slot."""
    if appointment.scheduled_start is None or appointment.cancelled_at is None:
        return False

    notice = as_utc(appointment.scheduled_start) - as_utc(appointment.cancelled_at)
    return notice < timedelta(hours=min_cancel_hours)


class SchedulingFacade:
    """Books, cancels and renders appointments for the API layer."""

    def __init__(
        self,
        session: AsyncSession,
        rules: BookingRules,
        notifier: NotificationSender | None = None,
        cache: ScheduleCache | None = None,
        clock: Callable[[], datetime] = clinic_now,
    ):
        self.session = session
        self.rules = rules
        self.notifier = notifier or LoggingNotificationSender()
        self.cache = cache
        self.clock = clock

        self.ledger = BookingLedger(session)
        self.penalties = PenaltyEscalationManager(session, rules.no_show_penalties, clock)
        self.scorer = ClientReliabilityScorer(self.ledger, rules.scoring_system, clock)
        self.policy = BookingPolicyEngine(
            session,
            self.ledger,
            self.penalties,
            self.scorer,
            rules,
            clock,
        )

    async def get_client(self, client_id: str) -> Client:
        client = await self.session.get(Client, client_id)
        if client is None or not client.is_active:
            raise NotFound(f"Client {client_id} not found")
        return client

    async def get_department(self, department_id: str) -> Department:
        return await self.policy.get_department(department_id)

    async def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = await self.ledger.get(appointment_id)
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} not found")
        return appointment

    async def validate(self, request: BookingRequest) -> BookingValidationResult:
        """Run the booking rules without reserving anything."""
        await self.get_client(request.client_id)
        return await self.policy.validate(
            request.client_id,
            request.department_id,
            request.appointment_date,
            request.slot_number,
        )

    async def book_appointment(self, request: BookingRequest) -> BookingResult:
        """Book a slot for a client.

        Raises:
            NotFound: Unknown client or department
            ValidationError: Slot number out of range
            PolicyViolation: One or more booking rules not met
            SlotConflict: The slot was taken by a concurrent booking
            PersistenceError: Database failure
        """
        client = await self.get_client(request.client_id)
        validation = await self.policy.validate(
            request.client_id,
            request.department_id,
            request.appointment_date,
            request.slot_number,
        )

        if not validation.can_book:
            raise PolicyViolation(validation.restrictions)

        department = await self.get_department(request.department_id)
        department_name = department.name
        phone = client.phone
        starts_at = slot_start(
            department,
            request.appointment_date,
            request.slot_number,
            self.policy.now().tzinfo,
        )

        appointment = await self.ledger.reserve(
            department_id=request.department_id,
            appointment_date=request.appointment_date,
            slot_number=request.slot_number,
            client_id=request.client_id,
            booked_by=request.booked_by,
            doctor_id=request.doctor_id,
            notes=request.notes,
            scheduled_start=as_utc(starts_at),
        )

        if self.cache is not None:
            self.cache.invalidate_department(request.department_id)

        audit_logger.log(
            action="appointment_booked",
            actor_id=request.booked_by,
            entity_type="appointment",
            entity_id=appointment.id,
            metadata={
                "department_id": request.department_id,
                "appointment_date": request.appointment_date.isoformat(),
                "slot_number": request.slot_number,
            },
        )

        await notify(
            self.notifier,
            phone,
            booking_confirmation_message(
                department_name,
                request.appointment_date.isoformat(),
                request.slot_number,
            ),
        )

        return BookingResult(
            appointment=appointment,
            warnings=validation.warnings,
            client_score=validation.client_score,
        )

    async def get_schedule(
        self,
        department_id: str,
        start_date: date | None = None,
        days: int = DEFAULT_SCHEDULE_DAYS,
    ) -> list[DaySchedule]:
        """Get slot availability of a department for `days` dates from `start_date`."""
        if not 1 <= days <= MAX_SCHEDULE_DAYS:
            raise ValidationError(f"days must be between 1 and {MAX_SCHEDULE_DAYS}")

        today = self.clock().date()
        start_date = start_date or today

        if self.cache is not None:
            cached = self.cache.get(department_id, start_date, days)
            if cached is not None:
                return cached

        department = await self.get_department(department_id)
        dates = date_range(start_date, days)
        bookings = await self.ledger.bookings_for_range(department_id, dates[0], dates[-1])
        schedule = build_schedule(department, bookings, dates, today=today)

        if self.cache is not None:
            self.cache.set(department_id, start_date, days, schedule)

        return schedule

    async def cancel_appointment(
        self,
        appointment_id: str,
        cancelled_by: str | None = None,
        reason: str | None = None,
    ) -> Appointment:
        """Cancel an appointment, freeing its slot.

        Cancelling an already cancelled appointment returns it unchanged.
        Cancelling within the configured notice period applies a late
        cancellation penalty.

        Raises:
            NotFound: Unknown appointment
            ValidationError: The appointment date has already passed
            InvalidStatusTransition: The appointment can no longer be cancelled
        """
        appointment = await self.get_appointment(appointment_id)
        if (
            appointment.status != AppointmentStatus.CANCELLED
            and appointment.appointment_date < self.clock().date()
        ):
            raise ValidationError("Cannot cancel past appointments")

        change = await self.ledger.release(
            appointment_id,
            AppointmentStatus.CANCELLED,
            changed_by=cancelled_by,
            reason=reason,
            at=as_utc(self.clock()),
        )
        appointment = change.appointment

        if not change.changed:
            return appointment

        self._invalidate(appointment.department_id)
        audit_logger.log(
            action="appointment_cancelled",
            actor_id=cancelled_by,
            entity_type="appointment",
            entity_id=appointment.id,
            metadata={"previous_status": change.previous_status.value, "reason": reason},
        )

        min_cancel_hours = self.rules.cancellation_rules.min_cancel_hours
        if is_late_cancellation(appointment, min_cancel_hours):
            await self.penalties.apply_penalty(
                appointment.client_id,
                PenaltyType.LATE_CANCEL,
                reason=f"Cancelled less than {min_cancel_hours:g} hours before appointment",
            )
            await self.session.refresh(appointment)

        return appointment

    async def update_status(
        self,
        appointment_id: str,
        new_status: AppointmentStatus,
        changed_by: str | None = None,
        reason: str | None = None,
    ) -> Appointment:
        """Move an appointment through its lifecycle.

        Marking a no-show applies a no-show penalty.
        """
        new_status = AppointmentStatus(new_status)
        change = await self.ledger.release(
            appointment_id,
            new_status,
            changed_by=changed_by,
            reason=reason,
            at=as_utc(self.clock()),
        )
        appointment = change.appointment

        if not change.changed:
            return appointment

        self._invalidate(appointment.department_id)
        audit_logger.log(
            action="appointment_status_changed",
            actor_id=changed_by,
            entity_type="appointment",
            entity_id=appointment.id,
            metadata={
                "from": change.previous_status.value,
                "to": new_status.value,
            },
        )

        if new_status == AppointmentStatus.NO_SHOW:
            await self.penalties.apply_penalty(
                appointment.client_id,
                PenaltyType.NO_SHOW,
                reason=f"No-show for appointment on {appointment.appointment_date.isoformat()}",
            )
            await self.session.refresh(appointment)

        return appointment

    async def client_score(self, client_id: str) -> ClientStanding:
        """Get the reliability score and penalty state of a client."""
        await self.get_client(client_id)
        return ClientStanding(
            client_id=client_id,
            score=await self.scorer.score(client_id),
            restriction=await self.penalties.is_currently_restricted(client_id),
            penalties=await self.penalties.list_penalties(client_id),
        )

    def _invalidate(self, department_id: str) -> None:
        if self.cache is not None:
            self.cache.invalidate_department(department_id)


async def create_scheduling_facade(
    session: AsyncSession,
    rules_provider: BookingRulesProvider,
    notifier: NotificationSender | None = None,
    cache: ScheduleCache | None = None,
    clock: Callable[[], datetime] = clinic_now,
) -> SchedulingFacade:
    """Build a facade with the current booking rules."""
    rules = await rules_provider.get_rules(DatabaseSettingsStore(session))
    return SchedulingFacade(session, rules, notifier=notifier, cache=cache, clock=clock)
