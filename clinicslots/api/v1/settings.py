"""Booking rule settings endpoints (staff only)."""

from fastapi import APIRouter

from clinicslots.api.deps import DbSession, RulesProvider, StaffSession
from clinicslots.booking.rules import BookingRules, DatabaseSettingsStore
from clinicslots.core.logging import audit_logger

router = APIRouter()


@router.get(
    "/anti-abuse",
    response_model=BookingRules,
    summary="Current booking rules",
)
async def get_anti_abuse_settings(
    staff: StaffSession,
    session: DbSession,
    rules_provider: RulesProvider,
) -> BookingRules:
    return await rules_provider.get_rules(DatabaseSettingsStore(session))


@router.put(
    "/anti-abuse",
    response_model=BookingRules,
    summary="Replace booking rules",
)
async def update_anti_abuse_settings(
    rules: BookingRules,
    staff: StaffSession,
    session: DbSession,
    rules_provider: RulesProvider,
) -> BookingRules:
    """Store new booking rules; they apply from the next request."""
    saved = await rules_provider.save_rules(DatabaseSettingsStore(session), rules)

    audit_logger.log(
        action="booking_rules_updated",
        actor_id=staff.actor_id,
        entity_type="system_setting",
        entity_id=rules_provider.key,
    )
    return saved
