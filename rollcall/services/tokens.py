"""QR check-in token lifecycle.

Two independent secret classes:

- the shared **event token**, printed or projected at the venue entrance and
  scanned by members themselves (EVENT_QR);
- the personal **member token**, shown by one member and scanned by staff
  (USER_QR). It only ever checks in the member it belongs to.

Rotating one class never touches the other. Tokens guard a surface that is
reachable by anyone holding a screenshot, so every comparison is constant
time and every failed validation is logged for anomaly monitoring.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from rollcall.core.enums import AuditAction, CheckinMethod, CheckinSource, DenialReason
from rollcall.core.exceptions import AuthorizationError, NotFoundError
from rollcall.core.sanitization import validate_token_format
from rollcall.core.security import create_token_lookup_key, generate_checkin_token, tokens_match
from rollcall.core.utils import utcnow
from rollcall.db.models import Event
from rollcall.services import policy
from rollcall.services.audit import AuditLog, recorded_denials
from rollcall.services.domain import CheckinSnapshot
from rollcall.services.policy import ALLOW, Decision, deny
from rollcall.services.roles import RoleProvider
from rollcall.services.state_store import CheckinStateStore
from rollcall.services.utils import get_event_or_raise, require_member_role

logger = structlog.get_logger(__name__)


def _well_formed(token: Optional[str]) -> Optional[str]:
    """Normalized token, or None when it is missing or malformed."""
    if token is None:
        return None
    try:
        return validate_token_format(token)
    except ValueError:
        return None


@dataclass(frozen=True)
class IssuedToken:
    token: str
    rotated_at: Optional[datetime]


class TokenManager:
    """Issues, rotates and validates QR check-in tokens."""

    def __init__(self, db: Session, store: CheckinStateStore, audit: AuditLog, roles: RoleProvider):
        self.db = db
        self.store = store
        self.audit = audit
        self.roles = roles

    # Event token

    def issue_event_token(self, event_id: int, actor_id: int) -> IssuedToken:
        """Return the event token, creating it on first use."""
        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=None,
                              actor_id=actor_id, source=CheckinSource.MODERATOR):
            event = get_event_or_raise(self.db, event_id)
            self._require_event_staff(event_id, actor_id)
            if not event.event_token:
                self._set_event_token(event, actor_id, "Event QR token issued")
                self.db.commit()
            return IssuedToken(event.event_token, event.event_token_rotated_at)

    def rotate_event_token(self, event_id: int, actor_id: int) -> IssuedToken:
        """Replace the event token. The previous token stops validating immediately."""
        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=None,
                              actor_id=actor_id, source=CheckinSource.MODERATOR):
            event = get_event_or_raise(self.db, event_id)
            self._require_event_staff(event_id, actor_id)
            self._set_event_token(event, actor_id, "Event QR token rotated")
            self.db.commit()
            logger.info("event_token_rotated", event_id=event_id, actor_id=actor_id)
            return IssuedToken(event.event_token, event.event_token_rotated_at)

    def ensure_event_token(self, event: Event, actor_id: int) -> None:
        """Issue an event token inside the caller's transaction if none exists."""
        if not event.event_token:
            self._set_event_token(event, actor_id, "Event QR token issued")

    def _set_event_token(self, event: Event, actor_id: int, comment: str) -> None:
        event.event_token = generate_checkin_token()
        event.event_token_rotated_at = utcnow()
        self.db.flush()
        # The secret itself is never written to the audit log
        self.audit.append(
            event_id=event.id,
            user_id=None,
            actor_id=actor_id,
            action=AuditAction.TOKEN_ROTATED,
            source=CheckinSource.MODERATOR,
            method=CheckinMethod.EVENT_QR,
            comment=comment,
        )

    def _require_event_staff(self, event_id: int, actor_id: int) -> None:
        if not policy.can_manage_event(self.roles.role_of(event_id, actor_id)):
            raise AuthorizationError("Only owners and moderators can manage the event check-in token")

    # Member token

    def issue_member_token(self, event_id: int, user_id: int, actor_id: int) -> IssuedToken:
        """Return a member's personal token, creating their check-in state if needed."""
        source = CheckinSource.USER if actor_id == user_id else CheckinSource.MODERATOR
        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=user_id,
                              actor_id=actor_id, source=source, method=CheckinMethod.USER_QR):
            get_event_or_raise(self.db, event_id)
            self._require_member_token_access(event_id, user_id, actor_id)
            state = self.store.get_or_create(event_id, user_id)
            if state.is_archived:
                raise NotFoundError("Membership not found")
            self.db.commit()
            return IssuedToken(state.member_token, state.member_token_rotated_at)

    def rotate_member_token(self, event_id: int, user_id: int, actor_id: int) -> IssuedToken:
        """Replace a member's personal token. The event token is unaffected."""
        is_self = actor_id == user_id
        source = CheckinSource.USER if is_self else CheckinSource.MODERATOR
        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=user_id,
                              actor_id=actor_id, source=source, method=CheckinMethod.USER_QR):
            get_event_or_raise(self.db, event_id)
            self._require_member_token_access(event_id, user_id, actor_id)
            transition = self.store.apply_member_token(event_id, user_id, generate_checkin_token())
            self.audit.append(
                event_id=event_id,
                user_id=user_id,
                actor_id=actor_id,
                action=AuditAction.TOKEN_ROTATED,
                source=source,
                method=CheckinMethod.USER_QR,
                comment="Member rotated own QR token" if is_self else "Moderator rotated member QR token",
            )
            self.db.commit()
            logger.info("member_token_rotated", event_id=event_id, user_id=user_id, actor_id=actor_id)
            state = transition.state
            return IssuedToken(state.member_token, state.member_token_rotated_at)

    def _require_member_token_access(self, event_id: int, user_id: int, actor_id: int) -> None:
        target_role = require_member_role(self.roles, event_id, user_id)
        is_self = actor_id == user_id
        actor_role = target_role if is_self else self.roles.role_of(event_id, actor_id)
        if not policy.can_manage_member_token(actor_role, target_role, is_self=is_self):
            raise AuthorizationError("You cannot manage this member's check-in token")

    # Validation

    @staticmethod
    def validate_event_token(event: Event, token: Optional[str]) -> Decision:
        if tokens_match(event.event_token, _well_formed(token)):
            return ALLOW
        return deny(DenialReason.INVALID_TOKEN, "Invalid or expired QR token")

    @staticmethod
    def validate_member_token(state: CheckinSnapshot, token: Optional[str]) -> Decision:
        if tokens_match(state.member_token, _well_formed(token)):
            return ALLOW
        return deny(DenialReason.INVALID_TOKEN, "Invalid or expired member QR token")

    def require_event_token(self, event: Event, token: Optional[str], *, user_id: int, actor_id: int) -> None:
        decision = self.validate_event_token(event, token)
        if decision.denied:
            self._reject(decision, event.id, user_id, actor_id, CheckinMethod.EVENT_QR)

    def require_member_token(self, state: CheckinSnapshot, token: Optional[str], *, actor_id: int) -> None:
        decision = self.validate_member_token(state, token)
        if decision.denied:
            self._reject(decision, state.event_id, state.user_id, actor_id, CheckinMethod.USER_QR)

    def resolve_member_token(self, event_id: int, token: Optional[str], *, actor_id: int) -> CheckinSnapshot:
        """Find the member a scanned personal QR belongs to.

        Raises:
            TokenError: when no member of this event holds the token
        """
        state = None
        token = _well_formed(token)
        if token:
            state = self.store.find_by_token_key(event_id, create_token_lookup_key(token))
        if state is None or not tokens_match(state.member_token, token):
            self._reject(
                deny(DenialReason.INVALID_TOKEN, "Invalid member QR token"),
                event_id, None, actor_id, CheckinMethod.USER_QR,
            )
        return state

    def _reject(self, decision: Decision, event_id: int, user_id: Optional[int],
                actor_id: int, method: CheckinMethod) -> None:
        logger.warning(
            "checkin_token_rejected",
            event_id=event_id,
            user_id=user_id,
            actor_id=actor_id,
            method=method.value,
        )
        raise policy.error_for(decision)
