"""Utility functions."""

from clinicslots.utils.time import as_utc, clinic_now, clinic_timezone, utc_now

__all__ = ["utc_now", "clinic_now", "clinic_timezone", "as_utc"]
