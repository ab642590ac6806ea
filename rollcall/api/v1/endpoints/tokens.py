"""QR token endpoints."""
from fastapi import APIRouter, Depends, Request

from rollcall.api.deps import get_checkin_service, get_current_actor
from rollcall.api.v1.endpoints.checkins import DENIAL_RESPONSES
from rollcall.core.rate_limit import limiter, RATE_LIMITS
from rollcall.schemas import TokenResponse
from rollcall.services import CheckinService

router = APIRouter()


@router.get("/{event_id}/tokens/event", response_model=TokenResponse, responses=DENIAL_RESPONSES)
def get_event_token_endpoint(
    event_id: int,
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """Event QR token for display at the venue (staff only). Issued on first request."""
    issued = service.tokens.issue_event_token(event_id, actor_id)
    return TokenResponse(token=issued.token, rotated_at=issued.rotated_at)


@router.post("/{event_id}/tokens/event/rotate", response_model=TokenResponse, responses=DENIAL_RESPONSES)
@limiter.limit(RATE_LIMITS["token_rotation"])
def rotate_event_token_endpoint(
    request: Request,
    event_id: int,
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """
    Rotate the event QR token (staff only).

    The previous token stops working immediately, so any printed or
    screenshotted code is invalidated. Members' personal tokens are not
    affected and recorded check-ins stay as they are.

    Example:
        Request:
            POST /api/v1/events/7/tokens/event/rotate
            Authorization: Bearer eyJhbGc...

        Response (200):
            {
                "token": "Yk3v9...",
                "rotated_at": "2025-11-03T15:02:11Z"
            }
    """
    issued = service.tokens.rotate_event_token(event_id, actor_id)
    return TokenResponse(token=issued.token, rotated_at=issued.rotated_at)


@router.get("/{event_id}/tokens/members/{user_id}", response_model=TokenResponse, responses=DENIAL_RESPONSES)
def get_member_token_endpoint(
    event_id: int,
    user_id: int,
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """A member's personal QR token. Members fetch their own to show at the door."""
    issued = service.tokens.issue_member_token(event_id, user_id, actor_id)
    return TokenResponse(token=issued.token, rotated_at=issued.rotated_at)


@router.post(
    "/{event_id}/tokens/members/{user_id}/rotate",
    response_model=TokenResponse,
    responses=DENIAL_RESPONSES,
)
@limiter.limit(RATE_LIMITS["token_rotation"])
def rotate_member_token_endpoint(
    request: Request,
    event_id: int,
    user_id: int,
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """Rotate a member's personal QR token, e.g. after it was shared. The event token is unaffected."""
    issued = service.tokens.rotate_member_token(event_id, user_id, actor_id)
    return TokenResponse(token=issued.token, rotated_at=issued.rotated_at)
