"""Penalty escalation for no-shows, late cancellations and abuse.

Repeat offenses of the same type within 30 days earn longer penalties:

    prior penalties   duration
    0                 first_offense_days     (default 3)
    1                 second_offense_days    (default 7)
    2                 third_offense_days     (default 14)
    3+                chronic_offender_days  (default 30)

Applying a penalty is best effort: it runs after the status change that
triggered it has been committed, and a failure here is logged and dropped.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Sequence
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicslots.booking.rules import NoShowPenalties
from clinicslots.core.logging import audit_logger
from clinicslots.models.penalty import ClientPenalty, PenaltyType, penalty_in_effect
from clinicslots.utils.time import clinic_now

logger = logging.getLogger(__name__)

ESCALATION_WINDOW = timedelta(days=30)


@dataclass
class RestrictionStatus:
    """Whether a client is currently barred from booking."""

    restricted: bool
    penalty_end_date: date | None = None
    penalty_type: PenaltyType | None = None


def escalation_days(prior_count: int, rules: NoShowPenalties) -> int:
    """Penalty duration for an offense with `prior_count` recent priors."""
    if prior_count >= 3:
        return rules.chronic_offender_days
    if prior_count == 2:
        return rules.third_offense_days
    if prior_count == 1:
        return rules.second_offense_days
    return rules.first_offense_days


class PenaltyEscalationManager:
    """Records penalties and answers "is this client restricted" queries."""

    def __init__(
        self,
        session: AsyncSession,
        rules: NoShowPenalties,
        clock: Callable[[], datetime] = clinic_now,
    ):
        self.session = session
        self.rules = rules
        self.clock = clock

    def _today(self) -> date:
        return self.clock().date()

    async def list_penalties(self, client_id: str) -> Sequence[ClientPenalty]:
        """Get all penalties of a client, newest first."""
        result = await self.session.execute(
            select(ClientPenalty)
            .where(ClientPenalty.client_id == client_id)
            .order_by(ClientPenalty.penalty_date.desc())
        )
        return result.scalars().all()

    async def is_currently_restricted(self, client_id: str) -> RestrictionStatus:
        """Check for a penalty in effect today.

        When several penalties overlap the one ending last is reported.
        """
        result = await self.session.execute(
            select(ClientPenalty).where(
                ClientPenalty.client_id == client_id,
                ClientPenalty.is_active == True,  # noqa: E712
            )
        )
        today = self._today()
        in_effect = [p for p in result.scalars().all() if penalty_in_effect(p, today)]

        if not in_effect:
            return RestrictionStatus(restricted=False)

        latest = max(in_effect, key=lambda p: p.end_date)
        return RestrictionStatus(
            restricted=True,
            penalty_end_date=latest.end_date,
            penalty_type=latest.penalty_type,
        )

    async def count_recent_penalties(self, client_id: str, penalty_type: PenaltyType) -> int:
        """Count penalties of one type dated within the escalation window."""
        since = self._today() - ESCALATION_WINDOW
        result = await self.session.execute(
            select(func.count())
            .select_from(ClientPenalty)
            .where(
                ClientPenalty.client_id == client_id,
                ClientPenalty.penalty_type == penalty_type,
                ClientPenalty.penalty_date >= since,
            )
        )
        return result.scalar_one()

    async def apply_penalty(
        self,
        client_id: str,
        penalty_type: PenaltyType,
        reason: str | None = None,
    ) -> ClientPenalty | None:
        """Insert an escalated penalty dated today.

        Never raises. Returns None when automatic no-show penalties are
        switched off or when the insert failed.
        """
        penalty_type = PenaltyType(penalty_type)

        if penalty_type == PenaltyType.NO_SHOW and not self.rules.auto_apply_penalties:
            logger.info(f"Automatic no-show penalties disabled; skipping client {client_id}")
            return None

        try:
            prior = await self.count_recent_penalties(client_id, penalty_type)
            penalty = ClientPenalty(
                id=str(uuid4()),
                client_id=client_id,
                penalty_type=penalty_type,
                penalty_date=self._today(),
                penalty_duration_days=escalation_days(prior, self.rules),
                reason=reason or f"Automatic {penalty_type.value} penalty",
                is_active=True,
            )
            self.session.add(penalty)
            await self.session.commit()
        except Exception:
            logger.exception(
                f"Failed to apply {penalty_type.value} penalty",
                extra={"client_id": client_id},
            )
            await self._discard()
            return None

        audit_logger.log(
            action="penalty_applied",
            actor_id=None,
            entity_type="client",
            entity_id=client_id,
            metadata={
                "penalty_type": penalty_type.value,
                "duration_days": penalty.penalty_duration_days,
                "prior_penalties": prior,
            },
        )
        return penalty

    async def _discard(self) -> None:
        try:
            await self.session.rollback()
        except Exception:
            logger.exception("Rollback after failed penalty insert also failed")
