"""Client notifications for booking events.

Providers are abstracted so an SMS gateway can be plugged in later. Sending
is always best effort: a failed notification never undoes a booking.
"""

import logging
from abc import ABC, abstractmethod
from uuid import uuid4

logger = logging.getLogger(__name__)


class NotificationSender(ABC):
    """Abstract base class for notification providers."""

    @abstractmethod
    async def send(self, phone: str, message: str) -> bool:
        """Send `message` to `phone`. Returns True when accepted."""
        pass


class LoggingNotificationSender(NotificationSender):
    """Simulated SMS provider that only logs the message."""

    def __init__(self, provider_name: str = "simulated"):
        self.provider_name = provider_name

    async def send(self, phone: str, message: str) -> bool:
        # In production, this would call the SMS gateway
        message_id = f"sms_{uuid4().hex[:16]}"
        logger.info(f"Sending SMS {message_id} to {phone}: {message[:50]}...")
        return True


def booking_confirmation_message(
    department_name: str,
    appointment_date: str,
    slot_number: int,
) -> str:
    """Render the text sent after a successful booking."""
    return (
        f"Your appointment at {department_name} on {appointment_date} "
        f"(slot {slot_number}) is booked."
    )


async def notify(sender: NotificationSender, phone: str | None, message: str) -> bool:
    """Send a notification, logging and swallowing any provider failure."""
    if not phone:
        logger.info("No phone number on file; notification skipped")
        return False

    try:
        return await sender.send(phone, message)
    except Exception:
        logger.exception("Notification delivery failed")
        return False
