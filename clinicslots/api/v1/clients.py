"""Client reliability endpoints."""

from datetime import date

from fastapi import APIRouter
from pydantic import BaseModel

from clinicslots.api.deps import CurrentSession, Scheduling, ensure_can_act_for
from clinicslots.booking.scoring import ReliabilityTier
from clinicslots.models.penalty import PenaltyType

router = APIRouter()


class PenaltyResponse(BaseModel):
    """Penalty record."""

    id: str
    penalty_type: PenaltyType
    penalty_date: date
    penalty_duration_days: int
    end_date: date
    reason: str | None
    is_active: bool

    class Config:
        from_attributes = True


class ClientScoreResponse(BaseModel):
    """Reliability score and current restriction of a client."""

    client_id: str
    score: float
    tier: ReliabilityTier
    total_appointments: int
    completed_appointments: int
    no_shows: int
    last_minute_cancellations: int
    completion_rate: float
    restricted: bool
    penalty_end_date: date | None
    penalty_type: PenaltyType | None
    penalties: list[PenaltyResponse]


@router.get(
    "/{client_id}/score",
    response_model=ClientScoreResponse,
)
async def get_client_score(
    client_id: str,
    context: CurrentSession,
    scheduling: Scheduling,
) -> ClientScoreResponse:
    """Get a client's reliability score, restriction and penalty history."""
    ensure_can_act_for(context, client_id)

    standing = await scheduling.client_score(client_id)
    score = standing.score

    return ClientScoreResponse(
        client_id=client_id,
        score=score.score,
        tier=score.tier,
        total_appointments=score.total_appointments,
        completed_appointments=score.completed_appointments,
        no_shows=score.no_shows,
        last_minute_cancellations=score.last_minute_cancellations,
        completion_rate=score.completion_rate,
        restricted=standing.restriction.restricted,
        penalty_end_date=standing.restriction.penalty_end_date,
        penalty_type=standing.restriction.penalty_type,
        penalties=[PenaltyResponse.model_validate(p) for p in standing.penalties],
    )
