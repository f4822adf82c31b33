"""Tests for the booking ledger and its double-booking guard."""

import asyncio
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinicslots.booking.errors import InvalidStatusTransition, NotFound, SlotConflict
from clinicslots.booking.ledger import BookingLedger
from clinicslots.db.base import Base
from clinicslots.models.appointment import AppointmentStatus
from clinicslots.models.client import Client
from clinicslots.models.department import Department

DAY = date(2025, 6, 3)


class TestReserve:
    """Tests for reserving slots."""

    async def test_reserve_creates_booked_appointment(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        ledger = BookingLedger(async_session)

        appointment = await ledger.reserve(
            department_id=department.id,
            appointment_date=DAY,
            slot_number=1,
            client_id=test_client_record.id,
            booked_by=test_client_record.id,
        )

        assert appointment.id
        assert appointment.status == AppointmentStatus.BOOKED
        assert appointment.appointment_date == DAY
        assert appointment.slot_number == 1

    async def test_second_reserve_of_same_slot_conflicts(
        self, async_session: AsyncSession, department, test_client_record, other_client_record
    ) -> None:
        ledger = BookingLedger(async_session)
        department_id = department.id
        other_id = other_client_record.id

        await ledger.reserve(department_id, DAY, 2, test_client_record.id)

        with pytest.raises(SlotConflict) as exc_info:
            await ledger.reserve(department_id, DAY, 2, other_id)

        assert exc_info.value.slot_number == 2
        assert exc_info.value.appointment_date == DAY
        assert "no longer available" in str(exc_info.value)

    async def test_same_slot_on_another_date_or_department_is_free(
        self, async_session: AsyncSession, department, second_department, test_client_record
    ) -> None:
        ledger = BookingLedger(async_session)

        await ledger.reserve(department.id, DAY, 1, test_client_record.id)
        await ledger.reserve(department.id, date(2025, 6, 4), 1, test_client_record.id)
        await ledger.reserve(second_department.id, DAY, 1, test_client_record.id)

        bookings = await ledger.bookings_for_range(department.id, DAY, date(2025, 6, 4))
        assert len(bookings) == 2


class TestRelease:
    """Tests for releasing slots through status changes."""

    @pytest.mark.parametrize(
        "status",
        [AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW],
    )
    async def test_released_slot_can_be_rebooked(
        self,
        async_session: AsyncSession,
        department,
        test_client_record,
        other_client_record,
        status: AppointmentStatus,
    ) -> None:
        ledger = BookingLedger(async_session)
        first = await ledger.reserve(department.id, DAY, 3, test_client_record.id)

        change = await ledger.release(first.id, status)
        assert change.changed is True
        assert change.previous_status == AppointmentStatus.BOOKED

        second = await ledger.reserve(department.id, DAY, 3, other_client_record.id)
        assert second.id != first.id

    async def test_completed_keeps_the_slot(
        self, async_session: AsyncSession, department, test_client_record, other_client_record
    ) -> None:
        ledger = BookingLedger(async_session)
        department_id = department.id
        other_id = other_client_record.id
        appointment = await ledger.reserve(department_id, DAY, 1, test_client_record.id)

        await ledger.release(appointment.id, AppointmentStatus.ARRIVED)
        await ledger.release(appointment.id, AppointmentStatus.COMPLETED)

        with pytest.raises(SlotConflict):
            await ledger.reserve(department_id, DAY, 1, other_id)

    async def test_cancel_is_idempotent(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        ledger = BookingLedger(async_session)
        appointment = await ledger.reserve(department.id, DAY, 1, test_client_record.id)

        first = await ledger.release(
            appointment.id,
            AppointmentStatus.CANCELLED,
            changed_by="staff-1",
            reason="Client request",
        )
        cancelled_at = first.appointment.cancelled_at
        second = await ledger.release(appointment.id, AppointmentStatus.CANCELLED)

        assert first.changed is True
        assert second.changed is False
        assert second.appointment.status == AppointmentStatus.CANCELLED
        assert second.appointment.cancelled_at == cancelled_at
        assert second.appointment.cancelled_by == "staff-1"
        assert second.appointment.cancellation_reason == "Client request"

    async def test_illegal_transition_is_rejected(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        ledger = BookingLedger(async_session)
        appointment = await ledger.reserve(department.id, DAY, 1, test_client_record.id)
        appointment_id = appointment.id
        await ledger.release(appointment_id, AppointmentStatus.CANCELLED)

        with pytest.raises(InvalidStatusTransition):
            await ledger.release(appointment_id, AppointmentStatus.CONFIRMED)

    async def test_release_unknown_appointment(self, async_session: AsyncSession) -> None:
        ledger = BookingLedger(async_session)

        with pytest.raises(NotFound):
            await ledger.release(
                "00000000-0000-4000-8000-000000000000",
                AppointmentStatus.CANCELLED,
            )

    async def test_rows_are_never_deleted(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        ledger = BookingLedger(async_session)
        appointment = await ledger.reserve(department.id, DAY, 1, test_client_record.id)

        await ledger.release(appointment.id, AppointmentStatus.CANCELLED)

        assert await ledger.get(appointment.id) is not None
        history = await ledger.appointments_for_client(test_client_record.id)
        assert [a.status for a in history] == [AppointmentStatus.CANCELLED]


class TestQueries:
    async def test_bookings_for_range_joins_client_number(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        ledger = BookingLedger(async_session)
        await ledger.reserve(department.id, DAY, 2, test_client_record.id)

        bookings = await ledger.bookings_for_range(department.id, DAY, DAY)

        assert len(bookings) == 1
        assert bookings[0].client_x_number == "X1001"
        assert bookings[0].slot_number == 2

    async def test_non_terminal_counts(
        self, async_session: AsyncSession, department, second_department, test_client_record
    ) -> None:
        ledger = BookingLedger(async_session)
        client_id = test_client_record.id

        first = await ledger.reserve(department.id, DAY, 1, client_id)
        await ledger.reserve(second_department.id, DAY, 1, client_id)
        await ledger.reserve(department.id, date(2025, 6, 4), 1, client_id)
        done = await ledger.reserve(department.id, date(2025, 6, 5), 1, client_id)

        await ledger.release(first.id, AppointmentStatus.CANCELLED)
        await ledger.release(done.id, AppointmentStatus.ARRIVED)
        await ledger.release(done.id, AppointmentStatus.COMPLETED)

        assert await ledger.count_non_terminal_for_client(client_id) == 2
        assert await ledger.count_non_terminal_for_client_on_date(client_id, DAY) == 1
        assert (
            await ledger.count_non_terminal_for_client_in_department(client_id, department.id)
            == 1
        )


class TestConcurrentReserve:
    """Concurrent reservations of one slot: exactly one wins."""

    async def test_only_one_concurrent_reserve_succeeds(self, tmp_path) -> None:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

        async with factory() as session:
            department = Department(name="Radiology", slots_per_day=2)
            clients = [Client(name=f"Client {n}", x_number=f"X2{n:03d}") for n in range(5)]
            session.add(department)
            session.add_all(clients)
            await session.commit()
            department_id = department.id
            client_ids = [c.id for c in clients]

        async def attempt(client_id: str) -> str:
            async with factory() as session:
                try:
                    await BookingLedger(session).reserve(department_id, DAY, 1, client_id)
                except SlotConflict:
                    return "conflict"
                return "booked"

        try:
            results = await asyncio.gather(*(attempt(cid) for cid in client_ids))

            assert results.count("booked") == 1
            assert results.count("conflict") == 4

            async with factory() as session:
                bookings = await BookingLedger(session).bookings_for_range(
                    department_id, DAY, DAY
                )
            assert len(bookings) == 1
        finally:
            await engine.dispose()
