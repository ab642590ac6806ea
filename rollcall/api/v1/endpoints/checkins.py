"""Check-in endpoints."""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request

from rollcall.api.deps import get_checkin_service, get_current_actor
from rollcall.api.v1.presenters import config_response, state_response
from rollcall.core.enums import CheckinMethod
from rollcall.core.rate_limit import limiter, RATE_LIMITS
from rollcall.schemas import (
    CheckinConfigResponse,
    CheckinConfigUpdate,
    CheckinRequest,
    CheckinResponse,
    CheckinStateResponse,
    ErrorResponse,
    MemberQrCheckinRequest,
)
from rollcall.services import CheckinOutcome, CheckinService

logger = structlog.get_logger(__name__)
router = APIRouter()

DENIAL_RESPONSES = {
    403: {"model": ErrorResponse, "description": "Check-in denied by policy"},
    404: {"model": ErrorResponse, "description": "Event or membership not found"},
    409: {"model": ErrorResponse, "description": "Concurrent updates, retry"},
}


def _outcome_response(outcome: CheckinOutcome, actor_id: int) -> CheckinResponse:
    return CheckinResponse(
        already_checked_in=outcome.already_checked_in,
        state=state_response(outcome.state, actor_id),
    )


@router.post("/{event_id}/checkins", response_model=CheckinResponse, responses=DENIAL_RESPONSES)
@limiter.limit(RATE_LIMITS["checkin"])
def attempt_checkin_endpoint(
    request: Request,
    event_id: int,
    checkin: CheckinRequest,
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """
    Check a member in to an event.

    Members check themselves in with SELF_MANUAL, or with EVENT_QR and the
    token from the QR code at the venue. Owners and moderators record
    MODERATOR_PANEL check-ins for other members by passing ``user_id``.

    Args:
        request: FastAPI Request (for rate limiting)
        event_id: Event to check in to
        checkin: CheckinRequest with method, optional user_id and token
        actor_id: Authenticated actor (injected)
        service: Check-in service (injected)

    Returns:
        CheckinResponse with status ACTIVE and the member's state.
        ``already_checked_in`` is true when the method was already active.

    Raises:
        403: CONFIG_DISABLED, BLOCKED_ALL, METHOD_BLOCKED, NOT_AUTHORIZED or
             INVALID_TOKEN. Each denial is recorded in the audit trail.
        404: Event or membership not found
        409: Concurrent updates kept conflicting

    Example:
        Request:
            POST /api/v1/events/7/checkins
            Authorization: Bearer eyJhbGc...
            {
                "method": "EVENT_QR",
                "token": "q0dE5r..."
            }

        Response (200):
            {
                "status": "ACTIVE",
                "already_checked_in": false,
                "state": {"checked_in_methods": ["EVENT_QR"], ...}
            }

        Response (403):
            {
                "success": false,
                "error": {"code": "INVALID_TOKEN", "message": "Invalid or expired QR token"}
            }
    """
    user_id = checkin.user_id if checkin.user_id is not None else actor_id
    outcome = service.attempt_checkin(event_id, user_id, checkin.method, actor_id, checkin.token)
    return _outcome_response(outcome, actor_id)


@router.post("/{event_id}/checkins/member-qr", response_model=CheckinResponse, responses=DENIAL_RESPONSES)
@limiter.limit(RATE_LIMITS["member_qr_scan"])
def member_qr_checkin_endpoint(
    request: Request,
    event_id: int,
    scan: MemberQrCheckinRequest,
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """
    Check in the member whose personal QR code was scanned (staff only).

    The token identifies the member; it can only ever check in that member.
    """
    outcome = service.checkin_by_member_token(event_id, scan.token, actor_id)
    return _outcome_response(outcome, actor_id)


@router.delete("/{event_id}/checkins/{user_id}", response_model=CheckinStateResponse, responses=DENIAL_RESPONSES)
def uncheck_endpoint(
    event_id: int,
    user_id: int,
    method: Optional[CheckinMethod] = None,
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """
    Remove a check-in method, or every method when ``method`` is omitted.

    Members may uncheck themselves. Unchecking someone else is a forced
    uncheck and requires outranking them.
    """
    state = service.uncheck(event_id, user_id, actor_id, method)
    return state_response(state, actor_id)


@router.get("/{event_id}/checkins/{user_id}", response_model=CheckinStateResponse, responses=DENIAL_RESPONSES)
def get_checkin_state_endpoint(
    event_id: int,
    user_id: int,
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """Current check-in state with the effective status of every method."""
    state = service.get_member_state(event_id, user_id, actor_id)
    return state_response(state, actor_id)


@router.put("/{event_id}/checkin/config", response_model=CheckinConfigResponse, responses=DENIAL_RESPONSES)
def update_checkin_config_endpoint(
    event_id: int,
    config: CheckinConfigUpdate,
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """
    Enable or disable check-in and choose the allowed methods (staff only).

    Enabling EVENT_QR issues the event token if the event has none yet.
    Disabling a method leaves existing check-ins in place.
    """
    event = service.configure_checkin(
        event_id,
        actor_id,
        enabled=config.checkin_enabled,
        methods=config.enabled_methods,
    )
    return config_response(event)
