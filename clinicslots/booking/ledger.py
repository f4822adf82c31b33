"""Booking ledger: the authoritative store of appointments.

Slot uniqueness is enforced by the ``uq_appointments_active_slot`` partial
unique index, not by reading before writing. ``reserve`` simply inserts and
lets the database decide; a uniqueness violation becomes ``SlotConflict``.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Sequence
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinicslots.booking.errors import NotFound, PersistenceError, SlotConflict
from clinicslots.models.appointment import (
    SLOT_FREEING_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentStatus,
    transition_status,
)
from clinicslots.models.client import Client

logger = logging.getLogger(__name__)


@dataclass
class BookingRecord:
    """Slot-holding booking joined with the client's public number."""

    id: str
    department_id: str
    appointment_date: date
    slot_number: int
    status: AppointmentStatus
    client_id: str
    client_x_number: str | None


@dataclass
class StatusChange:
    """Outcome of a status update."""

    appointment: Appointment
    previous_status: AppointmentStatus
    changed: bool


class BookingLedger:
    """Reserve and release slots against the database."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def reserve(
        self,
        department_id: str,
        appointment_date: date,
        slot_number: int,
        client_id: str,
        booked_by: str | None = None,
        doctor_id: str | None = None,
        notes: str | None = None,
        scheduled_start: datetime | None = None,
    ) -> Appointment:
        """Insert a booking for the slot in a single transaction.

        Raises:
            SlotConflict: Another slot-holding booking exists for the slot
            PersistenceError: Any other database failure
        """
        appointment = Appointment(
            id=str(uuid4()),
            client_id=client_id,
            department_id=department_id,
            doctor_id=doctor_id,
            appointment_date=appointment_date,
            slot_number=slot_number,
            scheduled_start=scheduled_start,
            status=AppointmentStatus.BOOKED,
            notes=notes,
            booked_by=booked_by,
        )

        self.session.add(appointment)

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.info(
                f"Slot conflict for department {department_id} on "
                f"{appointment_date.isoformat()} slot {slot_number}",
                extra={"department_id": department_id, "client_id": client_id},
            )
            raise SlotConflict(department_id, appointment_date, slot_number) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Failed to reserve slot")
            raise PersistenceError("Failed to reserve slot") from e

        await self.session.refresh(appointment)
        return appointment

    async def release(
        self,
        appointment_id: str,
        new_status: AppointmentStatus,
        changed_by: str | None = None,
        reason: str | None = None,
        at: datetime | None = None,
    ) -> StatusChange:
        """Move an appointment to `new_status` without deleting it.

        Moving to cancelled or no_show frees the slot immediately. Repeating
        the current status is a no-op. `at` stamps a cancellation (defaults to now).

        Raises:
            NotFound: Unknown appointment
            InvalidStatusTransition: Transition not allowed
            PersistenceError: Database failure
        """
        result = await self.session.execute(
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .with_for_update()
        )
        appointment = result.scalar_one_or_none()

        if not appointment:
            raise NotFound(f"Appointment {appointment_id} not found")

        previous = AppointmentStatus(appointment.status)
        changed = transition_status(appointment, new_status, changed_by, reason, at)

        try:
            # Also ends the transaction holding the row lock on a no-op
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception(f"Failed to update appointment {appointment_id}")
            raise PersistenceError("Failed to update appointment") from e

        if changed:
            await self.session.refresh(appointment)

        return StatusChange(appointment, previous, changed)

    async def get(self, appointment_id: str) -> Appointment | None:
        """Get a single appointment by ID."""
        result = await self.session.execute(
            select(Appointment).where(Appointment.id == appointment_id)
        )
        return result.scalar_one_or_none()

    async def bookings_for_range(
        self,
        department_id: str,
        start_date: date,
        end_date: date,
    ) -> list[BookingRecord]:
        """Get slot-holding bookings of a department between two dates (inclusive)."""
        result = await self.session.execute(
            select(Appointment, Client.x_number)
            .outerjoin(Client, Client.id == Appointment.client_id)
            .where(
                Appointment.department_id == department_id,
                Appointment.appointment_date >= start_date,
                Appointment.appointment_date <= end_date,
                Appointment.status.not_in(SLOT_FREEING_STATUSES),
            )
            .order_by(Appointment.appointment_date, Appointment.slot_number)
        )

        return [
            BookingRecord(
                id=appointment.id,
                department_id=appointment.department_id,
                appointment_date=appointment.appointment_date,
                slot_number=appointment.slot_number,
                status=appointment.status,
                client_id=appointment.client_id,
                client_x_number=x_number,
            )
            for appointment, x_number in result.all()
        ]

    async def appointments_for_client(
        self,
        client_id: str,
        created_since: datetime | None = None,
    ) -> Sequence[Appointment]:
        """Get a client's appointments, optionally only those created since a time."""
        query = select(Appointment).where(Appointment.client_id == client_id)

        if created_since is not None:
            query = query.where(Appointment.created_at >= created_since)

        query = query.order_by(Appointment.appointment_date, Appointment.slot_number)

        result = await self.session.execute(query)
        return result.scalars().all()

    async def _count_non_terminal(self, *criteria) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(Appointment)
            .where(
                Appointment.status.not_in(TERMINAL_STATUSES),
                *criteria,
            )
        )
        return result.scalar_one()

    async def count_non_terminal_for_client(self, client_id: str) -> int:
        """Count the client's in-flight appointments."""
        return await self._count_non_terminal(Appointment.client_id == client_id)

    async def count_non_terminal_for_client_on_date(
        self,
        client_id: str,
        appointment_date: date,
    ) -> int:
        """Count the client's in-flight appointments on one date, any department."""
        return await self._count_non_terminal(
            Appointment.client_id == client_id,
            Appointment.appointment_date == appointment_date,
        )

    async def count_non_terminal_for_client_in_department(
        self,
        client_id: str,
        department_id: str,
    ) -> int:
        """Count the client's in-flight appointments in one department."""
        return await self._count_non_terminal(
            Appointment.client_id == client_id,
            Appointment.department_id == department_id,
        )
