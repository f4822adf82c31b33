"""Key/value system settings editable by clinic administrators."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clinicslots.db.base import Base, TimestampMixin


class SystemSetting(Base, TimestampMixin):
    """A single named setting; values are strings, often JSON documents."""

    __tablename__ = "system_settings"

    setting_key: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )
    setting_value: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<SystemSetting {self.setting_key}>"
