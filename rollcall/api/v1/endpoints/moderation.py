"""Moderation endpoints."""
from fastapi import APIRouter, Depends, Request

from rollcall.api.deps import get_checkin_service, get_current_actor
from rollcall.api.v1.endpoints.checkins import DENIAL_RESPONSES
from rollcall.api.v1.presenters import state_response
from rollcall.core.rate_limit import limiter, RATE_LIMITS
from rollcall.schemas import CheckinStateResponse, ModerationRequest
from rollcall.services import CheckinService

router = APIRouter()


@router.post(
    "/{event_id}/members/{user_id}/moderation",
    response_model=CheckinStateResponse,
    responses=DENIAL_RESPONSES,
)
@limiter.limit(RATE_LIMITS["moderation"])
def moderate_member_endpoint(
    request: Request,
    event_id: int,
    user_id: int,
    moderation: ModerationRequest,
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """
    Block, unblock, reject or force-uncheck a member.

    The actor must be an owner or moderator and outrank the target member.
    Omitting ``method`` applies the action to every method. A REJECT with
    ``block`` set also blocks the method, or every method, in one step.

    Args:
        request: FastAPI Request (for rate limiting)
        event_id: Event the member belongs to
        user_id: Target member
        moderation: ModerationRequest with action, method, reason, block
        actor_id: Authenticated actor (injected)
        service: Check-in service (injected)

    Returns:
        CheckinStateResponse with the member's state after the action

    Raises:
        403: NOT_AUTHORIZED, recorded in the audit trail
        404: Event or membership not found
        409: Concurrent updates kept conflicting

    Example:
        Request:
            POST /api/v1/events/7/members/42/moderation
            Authorization: Bearer eyJhbGc...
            {
                "action": "BLOCK",
                "method": "SELF_MANUAL",
                "reason": "Checked in from outside the venue"
            }

        Response (200):
            {
                "checked_in_methods": [],
                "blocked_methods": ["SELF_MANUAL"],
                "method_status": {"SELF_MANUAL": "BLOCKED", ...},
                ...
            }

    Note:
        Unblocking never restores a method that was active before the block.
        The member has to check in again.
    """
    state = service.moderation.moderate(
        event_id,
        user_id,
        actor_id,
        moderation.action,
        method=moderation.method,
        reason=moderation.reason,
        show_reason_to_user=moderation.show_reason_to_user,
        block=moderation.block,
    )
    return state_response(state, actor_id)
