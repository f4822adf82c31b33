"""Tests for booking policy enforcement.

Covers:
1. Active penalties short-circuit every other check
2. Lead time limits
3. Same-day booking window
4. Pending, daily and per-department quotas
5. Restrictions accumulate in one response
6. Reliability warnings never block
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from clinicslots.booking.errors import NotFound, ValidationError
from clinicslots.booking.ledger import BookingLedger
from clinicslots.booking.penalties import PenaltyEscalationManager
from clinicslots.booking.policy import (
    AVERAGE_SCORE_WARNING,
    POOR_SCORE_WARNING,
    BookingPolicyEngine,
    format_hour,
)
from clinicslots.booking.rules import BookingLimits, BookingRules, ScoringSystem
from clinicslots.booking.scoring import ClientReliabilityScorer
from clinicslots.models.appointment import AppointmentStatus
from clinicslots.models.penalty import ClientPenalty, PenaltyType
from tests.helpers import SATURDAY, TODAY, TOMORROW, fixed_clock


def build_engine(session: AsyncSession, rules: BookingRules | None = None, clock=fixed_clock):
    rules = rules or BookingRules()
    ledger = BookingLedger(session)
    return BookingPolicyEngine(
        session,
        ledger,
        PenaltyEscalationManager(session, rules.no_show_penalties, clock),
        ClientReliabilityScorer(ledger, rules.scoring_system, clock),
        rules,
        clock,
    )


async def history(session: AsyncSession, department_id: str, client_id: str, statuses) -> None:
    """Store finished appointments on 4 June, one slot each."""
    ledger = BookingLedger(session)
    for slot, final_status in enumerate(statuses, start=1):
        appointment = await ledger.reserve(department_id, date(2025, 6, 4), slot, client_id)
        if final_status == AppointmentStatus.COMPLETED:
            await ledger.release(appointment.id, AppointmentStatus.ARRIVED)
        await ledger.release(appointment.id, final_status)


class TestFormatHour:
    @pytest.mark.parametrize(
        "hour,label",
        [(0, "12 AM"), (9, "9 AM"), (12, "12 PM"), (14, "2 PM"), (23, "11 PM"), (24, "12 AM")],
    )
    def test_format_hour(self, hour: int, label: str) -> None:
        assert format_hour(hour) == label


class TestInputValidation:
    async def test_slot_out_of_range(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        engine = build_engine(async_session)

        with pytest.raises(ValidationError):
            await engine.validate(test_client_record.id, department.id, TOMORROW, 5)

        with pytest.raises(ValidationError):
            await engine.validate(test_client_record.id, department.id, TOMORROW, 0)

    async def test_unknown_department(self, async_session: AsyncSession, test_client_record) -> None:
        engine = build_engine(async_session)

        with pytest.raises(NotFound):
            await engine.validate(
                test_client_record.id,
                "00000000-0000-4000-8000-000000000000",
                TOMORROW,
                1,
            )

    async def test_inactive_department(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        department.is_active = False
        await async_session.commit()
        engine = build_engine(async_session)

        with pytest.raises(NotFound):
            await engine.validate(test_client_record.id, department.id, TOMORROW, 1)


class TestAllowedBooking:
    async def test_clean_client_can_book(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        engine = build_engine(async_session)

        result = await engine.validate(test_client_record.id, department.id, TOMORROW, 1)

        assert result.can_book is True
        assert result.restrictions == []
        assert result.warnings == []
        assert result.client_score == 100.0

    async def test_same_day_before_cutoff_with_enough_notice(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        engine = build_engine(async_session)

        # Slot 3 starts at 12:00, three hours from now
        result = await engine.validate(test_client_record.id, department.id, TODAY, 3)

        assert result.can_book is True


class TestRestrictedClient:
    """Active penalties reject immediately."""

    async def test_restriction_short_circuits(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        client_id = test_client_record.id
        async_session.add(
            ClientPenalty(
                client_id=client_id,
                penalty_type=PenaltyType.NO_SHOW,
                penalty_date=TODAY,
                penalty_duration_days=3,
            )
        )
        await async_session.commit()
        engine = build_engine(async_session)

        # Saturday would otherwise be rejected as a closed day
        result = await engine.validate(client_id, department.id, SATURDAY, 1)

        assert result.can_book is False
        assert result.restrictions == ["Account restricted until 2025-06-05 due to no_show"]
        assert result.penalty_end_date == date(2025, 6, 5)
        assert result.warnings == []
        assert result.client_score == 100.0


class TestLeadTime:
    async def test_too_soon(self, async_session: AsyncSession, department, test_client_record) -> None:
        engine = build_engine(async_session)

        # Slot 2 starts at 10:00, one hour from now
        result = await engine.validate(test_client_record.id, department.id, TODAY, 2)

        assert result.can_book is False
        assert result.restrictions == ["Must book at least 2 hours in advance"]

    async def test_too_far_ahead(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        engine = build_engine(async_session)

        result = await engine.validate(test_client_record.id, department.id, date(2025, 7, 3), 1)

        assert result.restrictions == ["Cannot book more than 30 days in advance"]

    async def test_last_day_of_horizon_is_allowed(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        engine = build_engine(async_session)

        result = await engine.validate(test_client_record.id, department.id, date(2025, 7, 2), 1)

        assert result.can_book is True

    async def test_last_day_of_horizon_allows_late_slot(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        engine = build_engine(async_session)

        # Slot 4 starts at 14:00, later in the day than the 09:00 clock
        result = await engine.validate(test_client_record.id, department.id, date(2025, 7, 2), 4)

        assert result.can_book is True
        assert result.restrictions == []

    async def test_configured_numbers_are_interpolated(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        rules = BookingRules(booking_limits=BookingLimits(min_advance_hours=48, max_future_days=1))
        engine = build_engine(async_session, rules)

        result = await engine.validate(test_client_record.id, department.id, TOMORROW, 1)

        assert result.restrictions == ["Must book at least 48 hours in advance"]

    async def test_past_date(self, async_session: AsyncSession, department, test_client_record) -> None:
        engine = build_engine(async_session)

        result = await engine.validate(test_client_record.id, department.id, date(2025, 5, 30), 1)

        assert result.can_book is False
        assert "Cannot book appointments in the past" in result.restrictions

    async def test_non_working_day(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        engine = build_engine(async_session)

        result = await engine.validate(test_client_record.id, department.id, SATURDAY, 1)

        assert result.restrictions == ["General Practice is closed on Saturday"]


class TestSameDay:
    async def test_same_day_disabled(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        rules = BookingRules(booking_limits=BookingLimits(allow_same_day_booking=False))
        engine = build_engine(async_session, rules)

        result = await engine.validate(test_client_record.id, department.id, TODAY, 3)

        assert result.restrictions == ["Same-day booking is not allowed"]

    async def test_after_cutoff(self, async_session: AsyncSession, department, test_client_record) -> None:
        rules = BookingRules(booking_limits=BookingLimits(same_day_booking_cutoff_hour=9))
        engine = build_engine(async_session, rules)

        result = await engine.validate(test_client_record.id, department.id, TODAY, 3)

        assert result.restrictions == ["Same-day booking is not allowed after 9 AM"]

    async def test_cutoff_does_not_apply_to_other_days(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        late = datetime(2025, 6, 2, 15, 0, tzinfo=timezone.utc)
        engine = build_engine(async_session, clock=lambda: late)

        result = await engine.validate(test_client_record.id, department.id, TOMORROW, 1)

        assert result.can_book is True

    async def test_cutoff_uses_clinic_local_hour(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        """15:00 at the clinic is past a 14:00 cutoff even though it is 12:00 UTC."""
        evening = datetime(2025, 6, 2, 15, 0, tzinfo=timezone(timedelta(hours=3)))
        engine = build_engine(async_session, clock=lambda: evening)

        # Slot 4 starts at 14:00 clinic time, already past
        result = await engine.validate(test_client_record.id, department.id, TODAY, 4)

        assert "Same-day booking is not allowed after 2 PM" in result.restrictions


class TestQuotas:
    """Quota checks count in-flight appointments only."""

    async def test_daily_and_department_quota(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        client_id = test_client_record.id
        department_id = department.id
        await BookingLedger(async_session).reserve(department_id, TOMORROW, 1, client_id)
        engine = build_engine(async_session)

        result = await engine.validate(client_id, department_id, TOMORROW, 2)

        assert result.can_book is False
        assert result.restrictions == [
            "Maximum 1 appointment(s) per day allowed",
            "Maximum 1 pending appointment(s) per department allowed",
        ]

    async def test_daily_quota_spans_departments(
        self, async_session: AsyncSession, department, second_department, test_client_record
    ) -> None:
        client_id = test_client_record.id
        department_id = department.id
        await BookingLedger(async_session).reserve(second_department.id, TOMORROW, 1, client_id)
        engine = build_engine(async_session)

        result = await engine.validate(client_id, department_id, TOMORROW, 1)

        assert result.restrictions == ["Maximum 1 appointment(s) per day allowed"]

    async def test_pending_quota(
        self, async_session: AsyncSession, department, second_department, test_client_record
    ) -> None:
        client_id = test_client_record.id
        department_id = department.id
        ledger = BookingLedger(async_session)
        await ledger.reserve(department_id, TOMORROW, 1, client_id)
        await ledger.reserve(second_department.id, date(2025, 6, 4), 1, client_id)
        rules = BookingRules(booking_limits=BookingLimits(max_same_dept_pending=5))
        engine = build_engine(async_session, rules)

        result = await engine.validate(client_id, department_id, date(2025, 6, 5), 1)

        assert result.restrictions == ["Maximum 2 pending appointments allowed"]

    async def test_finished_appointments_do_not_count(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        client_id = test_client_record.id
        department_id = department.id
        ledger = BookingLedger(async_session)
        first = await ledger.reserve(department_id, TOMORROW, 1, client_id)
        await ledger.release(first.id, AppointmentStatus.CANCELLED)
        engine = build_engine(async_session)

        result = await engine.validate(client_id, department_id, TOMORROW, 2)

        assert result.can_book is True

    async def test_restrictions_accumulate(
        self, async_session: AsyncSession, department, second_department, test_client_record
    ) -> None:
        """Lead time and daily quota are both reported in one call."""
        client_id = test_client_record.id
        department_id = department.id
        await BookingLedger(async_session).reserve(second_department.id, TODAY, 3, client_id)
        engine = build_engine(async_session)

        result = await engine.validate(client_id, department_id, TODAY, 2)

        assert result.restrictions == [
            "Must book at least 2 hours in advance",
            "Maximum 1 appointment(s) per day allowed",
        ]


class TestReliabilityWarnings:
    async def test_poor_score_warns_but_allows(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        client_id = test_client_record.id
        department_id = department.id
        await history(
            async_session,
            department_id,
            client_id,
            [AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW],
        )
        engine = build_engine(async_session)

        result = await engine.validate(client_id, department_id, TOMORROW, 1)

        assert result.can_book is True
        assert result.client_score == 40.0
        assert result.warnings == [POOR_SCORE_WARNING]

    async def test_average_score_warns(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        client_id = test_client_record.id
        department_id = department.id
        await history(
            async_session,
            department_id,
            client_id,
            [AppointmentStatus.COMPLETED] * 3 + [AppointmentStatus.NO_SHOW],
        )
        engine = build_engine(async_session)

        result = await engine.validate(client_id, department_id, TOMORROW, 1)

        assert result.client_score == 65.0
        assert result.warnings == [AVERAGE_SCORE_WARNING]

    async def test_scoring_disabled(
        self, async_session: AsyncSession, department, test_client_record
    ) -> None:
        client_id = test_client_record.id
        department_id = department.id
        await history(async_session, department_id, client_id, [AppointmentStatus.NO_SHOW])
        engine = build_engine(async_session, BookingRules(scoring_system=ScoringSystem(enabled=False)))

        result = await engine.validate(client_id, department_id, TOMORROW, 1)

        assert result.client_score is None
        assert result.warnings == []