"""Client penalty model.

Penalties are inserted once and never updated; they lapse purely by date.
"""

from datetime import date, timedelta
from enum import Enum

from sqlalchemy import Boolean, Date, ForeignKey, Integer, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from clinicslots.db.base import Base, TimestampMixin


class PenaltyType(str, Enum):
    """Reason a client was penalised."""

    NO_SHOW = "no_show"
    LATE_CANCEL = "late_cancel"
    MULTIPLE_BOOKING = "multiple_booking"
    ABUSE_DETECTED = "abuse_detected"


class ClientPenalty(Base, TimestampMixin):
    """Time-boxed booking restriction placed on a client."""

    __tablename__ = "client_penalties"

    client_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    penalty_type: Mapped[PenaltyType] = mapped_column(
        SAEnum(
            PenaltyType,
            native_enum=False,
            length=30,
            values_callable=lambda types: [t.value for t in types],
        ),
        nullable=False,
    )
    penalty_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )
    penalty_duration_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    @property
    def end_date(self) -> date:
        """First date on which the penalty no longer applies."""
        return self.penalty_date + timedelta(days=self.penalty_duration_days)

    def __repr__(self) -> str:
        return f"<ClientPenalty {self.penalty_type.value} until {self.end_date}>"


def penalty_in_effect(penalty: ClientPenalty, today: date) -> bool:
    """Check whether `penalty` currently restricts booking.

    This is the only definition of "currently active" for penalties.
    """
    return bool(penalty.is_active) and today < penalty.end_date
