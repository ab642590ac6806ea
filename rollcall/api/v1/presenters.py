"""Conversion from service-layer values to response schemas."""
from rollcall.core.enums import CheckinMethod
from rollcall.db.models import AuditEntry, Event
from rollcall.schemas import (
    AuditEntryResponse,
    CheckinConfigResponse,
    CheckinStateResponse,
    RejectionResponse,
)
from rollcall.services.domain import CheckinSnapshot
from rollcall.services.policy import effective_status


def state_response(state: CheckinSnapshot, viewer_id: int) -> CheckinStateResponse:
    """Render a member's state for ``viewer_id``.

    A rejection the moderator chose to hide is left out when members view
    their own state.
    """
    rejection = state.last_rejection
    if rejection is not None and viewer_id == state.user_id and not rejection.visible_to_member:
        rejection = None

    return CheckinStateResponse(
        event_id=state.event_id,
        user_id=state.user_id,
        is_checked_in=state.is_checked_in,
        checked_in_methods=sorted(state.checked_in_methods, key=lambda m: m.value),
        blocked_all=state.blocked_all,
        blocked_methods=sorted(state.blocked_methods, key=lambda m: m.value),
        method_status={method: effective_status(state, method) for method in CheckinMethod},
        last_checkin_at=state.last_checkin_at,
        last_rejection=RejectionResponse(
            reason=rejection.reason,
            method=rejection.method,
            rejected_at=rejection.rejected_at,
        ) if rejection else None,
        version=state.version,
    )


def config_response(event: Event) -> CheckinConfigResponse:
    return CheckinConfigResponse(
        event_id=event.id,
        checkin_enabled=bool(event.checkin_enabled),
        enabled_methods=[CheckinMethod(m) for m in (event.enabled_methods or [])],
        event_token_rotated_at=event.event_token_rotated_at,
    )


def audit_entry_response(entry: AuditEntry, viewer_id: int) -> AuditEntryResponse:
    """Render one audit entry. Hidden moderator text is dropped for the member it concerns."""
    hidden = viewer_id == entry.user_id and not entry.show_comment_to_user
    return AuditEntryResponse(
        sequence=entry.id,
        event_id=entry.event_id,
        user_id=entry.user_id,
        actor_id=entry.actor_id,
        action=entry.action,
        method=entry.method,
        source=entry.source,
        result=entry.result,
        reason=None if hidden else entry.reason,
        comment=None if hidden else entry.comment,
        created_at=entry.created_at,
    )
