"""User presence endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from jugger_connect.core.errors import ChatError
from jugger_connect.schemas.user import PresenceResponse
from jugger_connect.services.user_service import require_user

from ..dependencies import CurrentUserDep, EventRouterDep, SessionDep, http_error

router = APIRouter(prefix="/users", tags=["users", "presence"])


@router.get("/{user_id}/presence", response_model=PresenceResponse)
async def get_user_presence(
    user_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    event_router: EventRouterDep,
) -> PresenceResponse:
    """Return the stored online status and whether any node holds a live connection."""
    try:
        user = require_user(db, user_id)
    except ChatError as exc:
        raise http_error(exc) from exc

    return PresenceResponse(
        user_id=user.id,
        is_online=user.is_online,
        last_seen=user.last_seen,
        connected=await event_router.is_reachable(user.id),
    )
