"""FastAPI dependency injection utilities."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Literal

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from clinicslots.booking.rules import BookingRulesProvider
from clinicslots.core.security import decode_access_token
from clinicslots.db.session import get_db
from clinicslots.services.notifications import NotificationSender
from clinicslots.services.schedule_cache import ScheduleCache
from clinicslots.services.scheduling import SchedulingFacade, create_scheduling_facade
from clinicslots.utils.time import clinic_now

# Security scheme
security = HTTPBearer(auto_error=False)

Role = Literal["client", "staff"]
ROLES = ("client", "staff")


@dataclass
class SessionContext:
    """Who is calling: a client booking for itself, or clinic staff."""

    actor_id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role == "staff"

    def can_act_for(self, client_id: str) -> bool:
        """Staff may act for any client; a client only for itself."""
        return self.is_staff or self.actor_id == client_id


async def get_current_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> dict | None:
    """Extract and decode the current JWT token."""
    if not credentials:
        return None

    return decode_access_token(credentials.credentials)


async def get_session_context(
    token: Annotated[dict | None, Depends(get_current_token)],
) -> SessionContext:
    """Resolve the caller from the bearer token.

    Raises:
        HTTPException: 401 without a valid token, 403 for an unknown role
    """
    if not token or not token.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    role = token.get("role")
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unknown session role",
        )

    return SessionContext(actor_id=token["sub"], role=role)


async def require_staff(
    context: Annotated[SessionContext, Depends(get_session_context)],
) -> SessionContext:
    """Allow only staff sessions."""
    if not context.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff authentication required",
        )
    return context


def ensure_can_act_for(context: SessionContext, client_id: str) -> None:
    """Reject a client session acting on another client's behalf."""
    if not context.can_act_for(client_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Clients may only act on their own account",
        )


def get_rules_provider(request: Request) -> BookingRulesProvider:
    return request.app.state.rules_provider


def get_schedule_cache(request: Request) -> ScheduleCache | None:
    return request.app.state.schedule_cache


def get_notifier(request: Request) -> NotificationSender:
    return request.app.state.notifier


def get_clock() -> Callable[[], datetime]:
    """Clock used for "now" and "today" in the clinic's timezone."""
    return clinic_now


async def get_scheduling_facade(
    session: Annotated[AsyncSession, Depends(get_db)],
    rules_provider: Annotated[BookingRulesProvider, Depends(get_rules_provider)],
    cache: Annotated[ScheduleCache | None, Depends(get_schedule_cache)],
    notifier: Annotated[NotificationSender, Depends(get_notifier)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
) -> SchedulingFacade:
    """Build the scheduling facade for this request."""
    return await create_scheduling_facade(
        session,
        rules_provider,
        notifier=notifier,
        cache=cache,
        clock=clock,
    )


# Type aliases for cleaner dependency injection
CurrentSession = Annotated[SessionContext, Depends(get_session_context)]
StaffSession = Annotated[SessionContext, Depends(require_staff)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
RulesProvider = Annotated[BookingRulesProvider, Depends(get_rules_provider)]
Scheduling = Annotated[SchedulingFacade, Depends(get_scheduling_facade)]
