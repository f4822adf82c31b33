"""Database initialization utilities."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicslots.booking.rules import ANTI_ABUSE_SETTINGS_KEY, BookingRules
from clinicslots.db.base import Base
from clinicslots.db.session import engine
from clinicslots.models.department import Department
from clinicslots.models.system_setting import SystemSetting

logger = logging.getLogger(__name__)

DEFAULT_DEPARTMENTS = (
    ("General Practice", 12),
    ("Dental", 8),
    ("Physiotherapy", 6),
)


async def create_tables() -> None:
    """Create all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def seed_departments(session: AsyncSession) -> list[Department]:
    """Create the default departments if there are none.

    Returns:
        Created departments (empty if any department already exists)
    """
    result = await session.execute(select(Department.id).limit(1))
    if result.scalar_one_or_none():
        logger.info("Departments already exist, skipping seed")
        return []

    departments = [
        Department(name=name, slots_per_day=slots)
        for name, slots in DEFAULT_DEPARTMENTS
    ]
    session.add_all(departments)
    await session.commit()

    logger.info(f"Created {len(departments)} default departments")
    return departments


async def seed_booking_rules(session: AsyncSession) -> None:
    """Store the default booking rules if none are stored."""
    result = await session.execute(
        select(SystemSetting).where(SystemSetting.setting_key == ANTI_ABUSE_SETTINGS_KEY)
    )
    if result.scalar_one_or_none():
        return

    session.add(
        SystemSetting(
            setting_key=ANTI_ABUSE_SETTINGS_KEY,
            setting_value=BookingRules().model_dump_json(by_alias=True),
            description="Booking limits, cancellation rules, penalties and scoring",
        )
    )
    await session.commit()
    logger.info("Stored default booking rules")


async def init_db(session: AsyncSession) -> None:
    """Initialize database with required data."""
    await create_tables()
    await seed_departments(session)
    await seed_booking_rules(session)
    logger.info("Database initialization complete")
