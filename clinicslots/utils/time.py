"""Time and datetime utilities."""

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from clinicslots.core.config import settings


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def clinic_timezone() -> tzinfo:
    """Return the configured clinic timezone."""
    return ZoneInfo(settings.clinic_timezone)


def clinic_now() -> datetime:
    """Get the current time in the clinic's timezone.

    Calendar dates ("today", same-day cutoff hour) are always derived from
    this value, never from the host's local time.
    """
    return datetime.now(clinic_timezone())


def as_utc(dt: datetime) -> datetime:
    """Return `dt` as an aware UTC datetime.

    SQLite hands back naive datetimes for timezone-aware columns; values are
    always stored in UTC so a naive value is treated as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
