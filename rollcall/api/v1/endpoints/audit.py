"""Audit trail endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from rollcall.api.deps import get_checkin_service, get_current_actor
from rollcall.api.v1.endpoints.checkins import DENIAL_RESPONSES
from rollcall.api.v1.presenters import audit_entry_response
from rollcall.core.config import settings
from rollcall.core.rate_limit import limiter, RATE_LIMITS
from rollcall.schemas import AuditPageResponse
from rollcall.services import CheckinService

router = APIRouter()


@router.get("/{event_id}/audit", response_model=AuditPageResponse, responses=DENIAL_RESPONSES)
@limiter.limit(RATE_LIMITS["audit_read"])
def get_audit_trail_endpoint(
    request: Request,
    event_id: int,
    user_id: Optional[int] = None,
    after: Optional[int] = Query(None, ge=0),
    limit: int = Query(settings.AUDIT_PAGE_SIZE, ge=1, le=settings.AUDIT_MAX_PAGE_SIZE),
    actor_id: int = Depends(get_current_actor),
    service: CheckinService = Depends(get_checkin_service),
):
    """
    Page through the check-in audit trail, oldest first.

    Pass the returned ``next_cursor`` as ``after`` to fetch the next page.
    Cursors are sequence numbers, so entries appended between two requests
    never shift a page. ``next_cursor`` is null on the last page.

    Staff can read the whole event or filter by ``user_id``; members can read
    their own trail only.

    Example:
        Request:
            GET /api/v1/events/7/audit?user_id=42&after=120&limit=2

        Response (200):
            {
                "entries": [
                    {"sequence": 121, "action": "CHECKIN", "result": "SUCCESS", ...},
                    {"sequence": 130, "action": "BLOCK", "result": "SUCCESS", ...}
                ],
                "next_cursor": 130
            }
    """
    page = service.get_audit_trail(event_id, actor_id, user_id=user_id, after=after, limit=limit)
    return AuditPageResponse(
        entries=[audit_entry_response(entry, actor_id) for entry in page.entries],
        next_cursor=page.next_cursor,
    )
