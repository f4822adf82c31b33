"""Client reliability scoring.

A client's score summarises how reliably they keep appointments over the
trailing six months:

    completion_rate = completed * 100 / total        (100 with no history)
    score = clamp(0, 100, completion_rate - 10 * no_shows - 5 * late_cancels)

A no-show lowers the completion rate and is also penalised on its own; the
arithmetic is kept exactly as the clinic defined it.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from clinicslots.booking.ledger import BookingLedger
from clinicslots.booking.rules import ScoringSystem
from clinicslots.models.appointment import Appointment, AppointmentStatus
from clinicslots.utils.time import as_utc, utc_now

SCORING_WINDOW = timedelta(days=183)
LAST_MINUTE_WINDOW = timedelta(hours=24)
NO_SHOW_WEIGHT = 10
LAST_MINUTE_CANCEL_WEIGHT = 5


class ReliabilityTier(str, Enum):
    """Reliability band derived from the score."""

    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    AVERAGE = "AVERAGE"
    POOR = "POOR"
    RESTRICTED = "RESTRICTED"


@dataclass
class ClientReliabilityScore:
    """Derived reliability metrics for one client (not persisted)."""

    score: float
    total_appointments: int
    completed_appointments: int
    no_shows: int
    last_minute_cancellations: int
    completion_rate: float
    tier: ReliabilityTier


def is_last_minute_cancellation(appointment: Appointment) -> bool:
    """Check if an appointment was cancelled within 24h of its slot."""
    if appointment.status != AppointmentStatus.CANCELLED:
        return False
    if appointment.cancelled_at is None or appointment.scheduled_start is None:
        return False

    deadline = as_utc(appointment.scheduled_start) - LAST_MINUTE_WINDOW
    return as_utc(appointment.cancelled_at) > deadline


def compute_score(
    total: int,
    completed: int,
    no_shows: int,
    last_minute_cancellations: int,
) -> tuple[float, float]:
    """Return (score, completion_rate) for the given counts."""
    if total == 0:
        return 100.0, 100.0

    completion_rate = completed * 100 / total
    raw = (
        completion_rate
        - NO_SHOW_WEIGHT * no_shows
        - LAST_MINUTE_CANCEL_WEIGHT * last_minute_cancellations
    )
    return max(0.0, min(100.0, raw)), completion_rate


def assign_tier(score: float, scoring: ScoringSystem) -> ReliabilityTier:
    """Map a score onto a tier using the configured thresholds."""
    if score >= scoring.excellent_threshold:
        return ReliabilityTier.EXCELLENT
    if score >= scoring.good_threshold:
        return ReliabilityTier.GOOD
    if score >= scoring.average_threshold:
        return ReliabilityTier.AVERAGE
    if score >= scoring.poor_threshold:
        return ReliabilityTier.POOR
    return ReliabilityTier.RESTRICTED


def score_appointments(
    appointments: Iterable[Appointment],
    scoring: ScoringSystem,
) -> ClientReliabilityScore:
    """Score a client from their appointments in the scoring window."""
    appointments = list(appointments)
    total = len(appointments)
    completed = sum(1 for a in appointments if a.status == AppointmentStatus.COMPLETED)
    no_shows = sum(1 for a in appointments if a.status == AppointmentStatus.NO_SHOW)
    late_cancels = sum(1 for a in appointments if is_last_minute_cancellation(a))

    score, completion_rate = compute_score(total, completed, no_shows, late_cancels)

    return ClientReliabilityScore(
        score=score,
        total_appointments=total,
        completed_appointments=completed,
        no_shows=no_shows,
        last_minute_cancellations=late_cancels,
        completion_rate=completion_rate,
        tier=assign_tier(score, scoring),
    )


class ClientReliabilityScorer:
    """Computes reliability scores from the booking ledger."""

    def __init__(
        self,
        ledger: BookingLedger,
        scoring: ScoringSystem,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ledger = ledger
        self.scoring = scoring
        self.clock = clock

    async def score(self, client_id: str) -> ClientReliabilityScore:
        """Score a client over appointments created in the last six months."""
        since = as_utc(self.clock()) - SCORING_WINDOW
        appointments = await self.ledger.appointments_for_client(
            client_id,
            created_since=since,
        )
        return score_appointments(appointments, self.scoring)
