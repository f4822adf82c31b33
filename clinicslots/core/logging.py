"""Structured logging configuration."""

import logging
import sys
from typing import Any

from clinicslots.core.config import settings

AUDIT_LOGGER_NAME = "clinicslots.audit"


class StructuredFormatter(logging.Formatter):
    """Key=value formatter used outside development.

    Booking identifiers passed through ``extra=`` are appended so a single
    booking can be followed across log lines.
    """

    context_keys = (
        "action",
        "client_id",
        "department_id",
        "appointment_id",
        "entity_type",
        "entity_id",
    )

    def format(self, record: logging.LogRecord) -> str:
        fields = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self.context_keys:
            value = getattr(record, key, None)
            if value is not None:
                fields[key] = value

        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        return " ".join(f"{key}={value}" for key, value in fields.items())


def setup_logging() -> None:
    """Configure the root logger for the service."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if settings.is_dev:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    else:
        console_handler.setFormatter(StructuredFormatter())

    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


class AuditLogger:
    """Records who changed which booking, and how.

    Actions in use: appointment_booked, appointment_cancelled,
    appointment_status_changed, penalty_applied, booking_rules_updated.
    """

    def __init__(self, name: str = AUDIT_LOGGER_NAME) -> None:
        self.logger = logging.getLogger(name)

    def log(
        self,
        action: str,
        actor_id: str | None,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.logger.info(
            f"AUDIT: action={action} actor={actor_id or 'system'} "
            f"entity={entity_type}:{entity_id} metadata={metadata or {}}",
            extra={
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
            },
        )


audit_logger = AuditLogger()
