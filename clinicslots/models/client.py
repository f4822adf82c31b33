"""Client (patient) records referenced by bookings."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from clinicslots.db.base import Base, TimestampMixin


class Client(Base, TimestampMixin):
    """A clinic client who can hold appointments."""

    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    phone: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )
    # Clinic-issued client number shown on occupied calendar slots
    x_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Client {self.x_number}>"
