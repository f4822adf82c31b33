"""Configurable booking rules and the settings store they are read from.

Thresholds are stored as one JSON document under the system setting
``anti_abuse_settings``. Keys may be camelCase (as written by the admin
screen) or snake_case.

Only the booking limits, cancellation notice, penalty durations and
scoring thresholds are enforced; the remaining switches are stored and
returned so the admin screen can round-trip them.
"""

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicslots.models.system_setting import SystemSetting

logger = logging.getLogger(__name__)

ANTI_ABUSE_SETTINGS_KEY = "anti_abuse_settings"


class _RulesModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class BookingLimits(_RulesModel):
    """Lead-time and quota limits applied to every booking attempt."""

    max_future_days: int = Field(30, ge=0)
    min_advance_hours: float = Field(2, ge=0)
    max_daily_appointments: int = Field(1, ge=0)
    max_pending_appointments: int = Field(2, ge=0)
    max_same_dept_pending: int = Field(1, ge=0)
    allow_same_day_booking: bool = True
    same_day_booking_cutoff_hour: int = Field(14, ge=0, le=24)


class CancellationRules(_RulesModel):
    """Cancellations closer than this to the slot count as late."""

    min_cancel_hours: float = Field(24, ge=0)
    max_cancellations_month: int = Field(3, ge=0)
    allow_same_day_cancel: bool = False
    require_cancel_reason: bool = True


class NoShowPenalties(_RulesModel):
    """Penalty durations (days) by number of recent offenses."""

    max_no_shows_month: int = Field(2, ge=0)
    first_offense_days: int = Field(3, ge=0)
    second_offense_days: int = Field(7, ge=0)
    third_offense_days: int = Field(14, ge=0)
    chronic_offender_days: int = Field(30, ge=0)
    auto_apply_penalties: bool = True


class ScoringSystem(_RulesModel):
    """Reliability tier thresholds (minimum score for each tier)."""

    enabled: bool = True
    excellent_threshold: float = 90
    good_threshold: float = 75
    average_threshold: float = 60
    poor_threshold: float = 40
    show_score_to_clients: bool = True


class AbuseDetection(_RulesModel):
    """Abuse alerting switches kept for the admin screen."""

    enabled: bool = True
    rapid_booking_minutes: int = Field(5, ge=0)
    cross_dept_conflict_check: bool = True
    proxy_booking_detection: bool = False
    alert_admins_on_abuse: bool = True


class BookingRules(_RulesModel):
    """All configurable thresholds used by the booking core."""

    booking_limits: BookingLimits = Field(default_factory=BookingLimits)
    cancellation_rules: CancellationRules = Field(default_factory=CancellationRules)
    no_show_penalties: NoShowPenalties = Field(default_factory=NoShowPenalties)
    scoring_system: ScoringSystem = Field(default_factory=ScoringSystem)
    abuse_detection: AbuseDetection = Field(default_factory=AbuseDetection)


def parse_rules(raw: str | None) -> BookingRules:
    """Parse a stored rules document, falling back to defaults.

    A missing or malformed document never blocks booking; it is logged and
    the defaults apply.
    """
    if not raw:
        return BookingRules()

    try:
        return BookingRules.model_validate_json(raw)
    except PydanticValidationError as e:
        logger.error(f"Invalid {ANTI_ABUSE_SETTINGS_KEY} document, using defaults: {e}")
        return BookingRules()


class SystemSettingsStore(ABC):
    """Source of raw system setting values."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value for `key`, or None if unset."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store `value` under `key`."""
        pass


class DatabaseSettingsStore(SystemSettingsStore):
    """Settings store backed by the ``system_settings`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> str | None:
        result = await self.session.execute(
            select(SystemSetting.setting_value).where(SystemSetting.setting_key == key)
        )
        return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        result = await self.session.execute(
            select(SystemSetting).where(SystemSetting.setting_key == key)
        )
        setting = result.scalar_one_or_none()

        if setting:
            setting.setting_value = value
        else:
            self.session.add(SystemSetting(setting_key=key, setting_value=value))

        await self.session.commit()


class InMemorySettingsStore(SystemSettingsStore):
    """Dictionary-backed store for tests and local tooling."""

    def __init__(self, values: dict[str, str] | None = None):
        self.values = dict(values or {})

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str) -> None:
        self.values[key] = value


class BookingRulesProvider:
    """Caches parsed booking rules until explicitly invalidated.

    One provider is created per application and injected where rules are
    needed; tests build their own instead of patching globals.
    """

    def __init__(self, key: str = ANTI_ABUSE_SETTINGS_KEY):
        self.key = key
        self._rules: BookingRules | None = None

    async def get_rules(self, store: SystemSettingsStore) -> BookingRules:
        """Return cached rules, loading them from `store` on first use."""
        if self._rules is None:
            self._rules = parse_rules(await store.get(self.key))
        return self._rules

    async def save_rules(self, store: SystemSettingsStore, rules: BookingRules) -> BookingRules:
        """Persist `rules` and drop the cached copy."""
        await store.set(self.key, rules.model_dump_json(by_alias=True))
        self.invalidate()
        logger.info(f"Updated {self.key}")
        return rules

    def invalidate(self) -> None:
        """Forget cached rules so the next read goes to the store."""
        self._rules = None
