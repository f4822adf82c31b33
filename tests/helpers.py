"""Shared test constants and helpers."""

from datetime import date, datetime, timezone

from clinicslots.booking.rules import BookingLimits, BookingRules
from clinicslots.core.security import create_access_token

# Monday 2 June 2025, 09:00 at the clinic
NOW = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)
TODAY = NOW.date()
TOMORROW = date(2025, 6, 3)
SATURDAY = date(2025, 6, 7)


def fixed_clock() -> datetime:
    return NOW


def permissive_rules() -> BookingRules:
    """Default rules with quotas high enough to book freely."""
    return BookingRules(
        booking_limits=BookingLimits(
            max_daily_appointments=10,
            max_pending_appointments=10,
            max_same_dept_pending=10,
        )
    )


def auth_headers(actor_id: str, role: str) -> dict[str, str]:
    token = create_access_token(actor_id, additional_claims={"role": role})
    return {"Authorization": f"Bearer {token}"}
