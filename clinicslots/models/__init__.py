"""Database models for the clinic booking core."""

from clinicslots.models.appointment import (
    ALLOWED_TRANSITIONS,
    Appointment,
    AppointmentStatus,
    SLOT_FREEING_STATUSES,
    TERMINAL_STATUSES,
    transition_status,
)
from clinicslots.models.client import Client
from clinicslots.models.department import WEEKDAY_NAMES, Department
from clinicslots.models.penalty import ClientPenalty, PenaltyType, penalty_in_effect
from clinicslots.models.system_setting import SystemSetting

__all__ = [
    # Departments
    "Department",
    "WEEKDAY_NAMES",
    # Clients
    "Client",
    # Appointments
    "Appointment",
    "AppointmentStatus",
    "ALLOWED_TRANSITIONS",
    "SLOT_FREEING_STATUSES",
    "TERMINAL_STATUSES",
    "transition_status",
    # Penalties
    "ClientPenalty",
    "PenaltyType",
    "penalty_in_effect",
    # Settings
    "SystemSetting",
]
