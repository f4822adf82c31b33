"""Booking policy enforcement.

Every booking attempt is checked against the configured booking rules
before the ledger is asked for the slot. All unmet rules are reported
together so the client sees every reason at once; the only exception is an
account under an active penalty, which short-circuits the remaining checks.

Order of evaluation:

1. Active penalty (immediate rejection)
2. Lead time (too soon / too far ahead)
3. Same-day booking window
4. Pending, daily and per-department quotas
5. Reliability warnings (never block)
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from clinicslots.booking.calendar import is_past_date, is_working_day, slot_start, weekday_name
from clinicslots.booking.errors import NotFound, ValidationError
from clinicslots.booking.ledger import BookingLedger
from clinicslots.booking.penalties import PenaltyEscalationManager
from clinicslots.booking.rules import BookingRules
from clinicslots.booking.scoring import (
    ClientReliabilityScore,
    ClientReliabilityScorer,
    ReliabilityTier,
)
from clinicslots.models.department import Department
from clinicslots.utils.time import clinic_now, clinic_timezone

logger = logging.getLogger(__name__)

POOR_SCORE_WARNING = (
    "Your reliability score is low. Please attend scheduled appointments to improve it."
)
AVERAGE_SCORE_WARNING = (
    "Consider improving your appointment attendance for better booking privileges."
)


@dataclass
class BookingValidationResult:
    """Outcome of a policy check.

    Attributes:
        can_book: True when there are no restrictions
        restrictions: Every unmet rule, as client-facing messages
        warnings: Advisory messages that never block booking
        client_score: Reliability score, when scoring is enabled
        penalty_end_date: First day the client may book again, if restricted
    """

    can_book: bool
    restrictions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    client_score: float | None = None
    penalty_end_date: date | None = None


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def format_hour(hour: int) -> str:
    """Format a 0-24 hour as "9 AM", "12 PM", "2 PM"."""
    hour = hour % 24
    suffix = "AM" if hour < 12 else "PM"
    display = hour % 12 or 12
    return f"{display} {suffix}"


class BookingPolicyEngine:
    """Decides whether a client may book a given slot."""

    def __init__(
        self,
        session: AsyncSession,
        ledger: BookingLedger,
        penalties: PenaltyEscalationManager,
        scorer: ClientReliabilityScorer,
        rules: BookingRules,
        clock: Callable[[], datetime] = clinic_now,
    ):
        self.session = session
        self.ledger = ledger
        self.penalties = penalties
        self.scorer = scorer
        self.rules = rules
        self.clock = clock

    def now(self) -> datetime:
        now = self.clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=clinic_timezone())
        return now

    async def get_department(self, department_id: str) -> Department:
        """Load an active department.

        Raises:
            NotFound: Unknown or inactive department
        """
        department = await self.session.get(Department, department_id)
        if department is None or not department.is_active:
            raise NotFound(f"Department {department_id} not found")
        return department

    async def validate(
        self,
        client_id: str,
        department_id: str,
        appointment_date: date,
        slot_number: int,
    ) -> BookingValidationResult:
        """Check a booking request against every booking rule.

        Raises:
            NotFound: Unknown or inactive department
            ValidationError: Slot number outside the department's range
        """
        department = await self.get_department(department_id)

        if not 1 <= slot_number <= department.slots_per_day:
            raise ValidationError(
                f"Slot number must be between 1 and {department.slots_per_day}"
            )

        restriction = await self.penalties.is_currently_restricted(client_id)
        if restriction.restricted:
            end_date = restriction.penalty_end_date
            score = await self._score(client_id)
            return BookingValidationResult(
                can_book=False,
                restrictions=[
                    f"Account restricted until {end_date.isoformat()} "
                    f"due to {restriction.penalty_type.value}"
                ],
                client_score=score.score if score is not None else None,
                penalty_end_date=end_date,
            )

        now = self.now()
        today = now.date()
        restrictions: list[str] = []
        warnings: list[str] = []

        if is_past_date(appointment_date, today):
            restrictions.append("Cannot book appointments in the past")
        elif not is_working_day(department, appointment_date):
            restrictions.append(
                f"{department.name} is closed on {weekday_name(appointment_date).capitalize()}"
            )

        restrictions.extend(self._check_lead_time(department, appointment_date, slot_number, now))
        restrictions.extend(self._check_same_day(appointment_date, now))
        restrictions.extend(await self._check_quotas(client_id, department_id, appointment_date))

        client_score = None
        score = await self._score(client_id)
        if score is not None:
            client_score = score.score
            if score.tier == ReliabilityTier.POOR:
                warnings.append(POOR_SCORE_WARNING)
            elif score.tier == ReliabilityTier.AVERAGE:
                warnings.append(AVERAGE_SCORE_WARNING)

        if restrictions:
            logger.info(
                f"Booking rejected for client {client_id}: {len(restrictions)} restriction(s)",
                extra={"client_id": client_id, "department_id": department_id},
            )

        return BookingValidationResult(
            can_book=not restrictions,
            restrictions=restrictions,
            warnings=warnings,
            client_score=client_score,
        )

    async def _score(self, client_id: str) -> ClientReliabilityScore | None:
        if not self.rules.scoring_system.enabled:
            return None
        return await self.scorer.score(client_id)

    def _check_lead_time(
        self,
        department: Department,
        appointment_date: date,
        slot_number: int,
        now: datetime,
    ) -> list[str]:
        limits = self.rules.booking_limits
        starts_at = slot_start(department, appointment_date, slot_number, now.tzinfo)
        hours_until = (starts_at - now).total_seconds() / 3600
        # The booking horizon counts calendar days, whatever the slot time
        days_until = (appointment_date - now.date()).days

        restrictions = []
        if hours_until < limits.min_advance_hours:
            restrictions.append(
                f"Must book at least {_format_number(limits.min_advance_hours)} hours in advance"
            )
        if days_until > limits.max_future_days:
            restrictions.append(
                f"Cannot book more than {limits.max_future_days} days in advance"
            )
        return restrictions

    def _check_same_day(self, appointment_date: date, now: datetime) -> list[str]:
        if appointment_date != now.date():
            return []

        limits = self.rules.booking_limits
        if not limits.allow_same_day_booking:
            return ["Same-day booking is not allowed"]
        if now.hour >= limits.same_day_booking_cutoff_hour:
            cutoff = format_hour(limits.same_day_booking_cutoff_hour)
            return [f"Same-day booking is not allowed after {cutoff}"]
        return []

    async def _check_quotas(
        self,
        client_id: str,
        department_id: str,
        appointment_date: date,
    ) -> list[str]:
        limits = self.rules.booking_limits
        restrictions = []

        pending = await self.ledger.count_non_terminal_for_client(client_id)
        if pending >= limits.max_pending_appointments:
            restrictions.append(
                f"Maximum {limits.max_pending_appointments} pending appointments allowed"
            )

        on_date = await self.ledger.count_non_terminal_for_client_on_date(
            client_id, appointment_date
        )
        if on_date >= limits.max_daily_appointments:
            restrictions.append(
                f"Maximum {limits.max_daily_appointments} appointment(s) per day allowed"
            )

        in_department = await self.ledger.count_non_terminal_for_client_in_department(
            client_id, department_id
        )
        if in_department >= limits.max_same_dept_pending:
            restrictions.append(
                f"Maximum {limits.max_same_dept_pending} pending appointment(s) "
                f"per department allowed"
            )

        return restrictions
