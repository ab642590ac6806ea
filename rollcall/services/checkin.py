"""Check-in business logic.

Composes token validation, the policy engine, the state store and the audit
log into the operations the API exposes. Flow of an attempt:

    token check (QR methods) -> can_attempt -> apply_checkin + audit -> commit

Every policy denial is committed to the audit log as a ``DENIED_ATTEMPT``
before the error propagates.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

import structlog
from sqlalchemy.orm import Session

from rollcall.core.enums import AuditAction, AuditResult, CheckinMethod, CheckinSource, ModerationAction, Role
from rollcall.core.exceptions import AuthorizationError, NotFoundError
from rollcall.db.models import Event
from rollcall.services import policy
from rollcall.services.audit import AuditLog, AuditPage, recorded_denials
from rollcall.services.domain import CheckinSnapshot, EventConfig, serialize_methods
from rollcall.services.moderation import ModerationGateway
from rollcall.services.roles import MembershipRoleProvider, RoleProvider
from rollcall.services.state_store import CheckinStateStore, Transition
from rollcall.services.tokens import TokenManager
from rollcall.services.utils import get_event_or_raise, require_member_role

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckinOutcome:
    state: CheckinSnapshot
    already_checked_in: bool


class CheckinService:
    """Entry point for check-in attempts, unchecks and event configuration."""

    def __init__(
        self,
        db: Session,
        roles: Optional[RoleProvider] = None,
        store: Optional[CheckinStateStore] = None,
    ):
        self.db = db
        self.roles = roles or MembershipRoleProvider(db)
        self.store = store or CheckinStateStore(db)
        self.audit = AuditLog(db)
        self.tokens = TokenManager(db, self.store, self.audit, self.roles)
        self.moderation = ModerationGateway(db, self.store, self.audit, self.roles)

    def attempt_checkin(
        self,
        event_id: int,
        user_id: int,
        method: CheckinMethod,
        actor_id: int,
        token: Optional[str] = None,
    ) -> CheckinOutcome:
        """
        Check ``user_id`` in to an event through ``method``.

        Args:
            event_id: Event to check in to
            user_id: Member being checked in
            method: Check-in channel
            actor_id: Who performs the attempt (the member, or staff)
            token: Event token for EVENT_QR, member token for USER_QR

        Returns:
            CheckinOutcome with the resulting state; ``already_checked_in`` is
            True when the method was active before (idempotent replay)

        Raises:
            ConfigError, BlockedError, AuthorizationError, TokenError,
            NotFoundError: policy denials, each recorded in the audit log
            ConflictError: concurrent writes kept winning the race
        """
        self_service = actor_id == user_id
        source = CheckinSource.USER if self_service else CheckinSource.MODERATOR

        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=user_id,
                              actor_id=actor_id, source=source, method=method):
            event = get_event_or_raise(self.db, event_id)
            target_role = require_member_role(self.roles, event_id, user_id)
            actor_role = target_role if self_service else self.roles.role_of(event_id, actor_id)

            member = self.store.peek(event_id, user_id)
            if member.is_archived:
                raise NotFoundError("Membership not found")

            if method == CheckinMethod.EVENT_QR:
                self.tokens.require_event_token(event, token, user_id=user_id, actor_id=actor_id)
            elif method == CheckinMethod.USER_QR:
                self.tokens.require_member_token(member, token, actor_id=actor_id)

            decision = policy.can_attempt(
                EventConfig.from_model(event), member, method, actor_role, self_service=self_service
            )
            if decision.denied:
                raise policy.error_for(decision)

            transition = self.store.apply_checkin(event_id, user_id, method)
            self._record(transition, AuditAction.CHECKIN, event_id, user_id, actor_id, source, method,
                         noop_reason="Method already active")
            self.db.commit()

        logger.info(
            "checkin_applied",
            event_id=event_id,
            user_id=user_id,
            actor_id=actor_id,
            method=method.value,
            changed=transition.changed,
        )
        return CheckinOutcome(state=transition.state, already_checked_in=not transition.changed)

    def checkin_by_member_token(self, event_id: int, token: str, actor_id: int) -> CheckinOutcome:
        """Staff scanned a member's personal QR at the door."""
        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=None,
                              actor_id=actor_id, source=CheckinSource.MODERATOR,
                              method=CheckinMethod.USER_QR):
            member = self.tokens.resolve_member_token(event_id, token, actor_id=actor_id)
        return self.attempt_checkin(event_id, member.user_id, CheckinMethod.USER_QR, actor_id, token)

    def uncheck(
        self,
        event_id: int,
        user_id: int,
        actor_id: int,
        method: Optional[CheckinMethod] = None,
    ) -> CheckinSnapshot:
        """
        Remove one check-in method, or all of them.

        Members uncheck themselves directly. Anyone else goes through the
        moderation gateway as a forced uncheck.
        """
        if actor_id != user_id:
            return self.moderation.force_uncheck(event_id, user_id, actor_id, method)

        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=user_id,
                              actor_id=actor_id, source=CheckinSource.USER, method=method):
            get_event_or_raise(self.db, event_id)
            role = require_member_role(self.roles, event_id, user_id)
            if not policy.can_moderate(role, role, ModerationAction.UNCHECK, is_self=True):
                raise AuthorizationError("You cannot uncheck this member")

            transition = self.store.apply_uncheck(event_id, user_id, method)
            self._record(transition, AuditAction.UNCHECK, event_id, user_id, actor_id,
                         CheckinSource.USER, method, noop_reason="Method was not active")
            self.db.commit()

        logger.info("checkin_removed", event_id=event_id, user_id=user_id, method=method.value if method else None)
        return transition.state

    def configure_checkin(
        self,
        event_id: int,
        actor_id: int,
        enabled: Optional[bool] = None,
        methods: Optional[Iterable[CheckinMethod]] = None,
    ) -> Event:
        """
        Update an event's check-in switch and enabled methods.

        Enabling EVENT_QR issues the event token if the event has none yet.
        Existing check-ins are left in place when methods are disabled.
        """
        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=None,
                              actor_id=actor_id, source=CheckinSource.MODERATOR):
            event = get_event_or_raise(self.db, event_id)
            if not policy.can_manage_event(self.roles.role_of(event_id, actor_id)):
                raise AuthorizationError("Only owners and moderators can configure check-in")

            changes = []
            if enabled is not None and bool(event.checkin_enabled) != enabled:
                event.checkin_enabled = enabled
                changes.append(f"checkin_enabled={enabled}")
            if methods is not None:
                serialized = serialize_methods(set(methods))
                if serialized != sorted(event.enabled_methods or []):
                    event.enabled_methods = serialized
                    changes.append(f"enabled_methods={','.join(serialized) or '-'}")

            if CheckinMethod.EVENT_QR.value in (event.enabled_methods or []):
                self.tokens.ensure_event_token(event, actor_id)

            self.audit.append(
                event_id=event_id,
                user_id=None,
                actor_id=actor_id,
                action=AuditAction.CONFIG_CHANGED,
                source=CheckinSource.MODERATOR,
                result=AuditResult.SUCCESS if changes else AuditResult.NOOP,
                comment="; ".join(changes) or None,
            )
            self.db.commit()
            self.db.refresh(event)

        logger.info("checkin_configured", event_id=event_id, actor_id=actor_id, changes=changes)
        return event

    def archive_member(self, event_id: int, user_id: int, reason: str = "membership removed") -> Optional[CheckinSnapshot]:
        """Archive a member's check-in state when their membership ends.

        Called by the membership layer. Active check-ins are cleared, nothing
        is deleted, and the member cannot check in again.
        """
        transition = self.store.archive(event_id, user_id)
        if transition is None:
            return None
        if transition.changed:
            self.audit.append(
                event_id=event_id,
                user_id=user_id,
                actor_id=None,
                action=AuditAction.UNCHECK,
                source=CheckinSource.SYSTEM,
                reason=f"Check-in invalidated: {reason}",
            )
        self.db.commit()
        logger.info("checkin_state_archived", event_id=event_id, user_id=user_id, reason=reason)
        return transition.state

    def get_member_state(self, event_id: int, user_id: int, actor_id: int) -> CheckinSnapshot:
        """Current state of a member, readable by the member and by staff."""
        source = CheckinSource.USER if actor_id == user_id else CheckinSource.MODERATOR
        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=user_id,
                              actor_id=actor_id, source=source):
            get_event_or_raise(self.db, event_id)
            require_member_role(self.roles, event_id, user_id)
            if actor_id != user_id and not policy.can_manage_event(self.roles.role_of(event_id, actor_id)):
                raise AuthorizationError("Only owners and moderators can view other members' check-in")
            state = self.store.peek(event_id, user_id)
            if state.is_archived:
                raise NotFoundError("Membership not found")
        return state

    def get_audit_trail(
        self,
        event_id: int,
        actor_id: int,
        user_id: Optional[int] = None,
        after: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> AuditPage:
        """
        Page through the audit trail of an event, or of one member.

        Staff read everything. Members may read their own trail only.
        """
        own_trail = user_id is not None and user_id == actor_id
        source = CheckinSource.USER if own_trail else CheckinSource.MODERATOR
        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=user_id,
                              actor_id=actor_id, source=source):
            get_event_or_raise(self.db, event_id)
            actor_role = self.roles.role_of(event_id, actor_id)
            if not (own_trail and actor_role > Role.NONE) and not policy.can_manage_event(actor_role):
                raise AuthorizationError("Only owners and moderators can read the check-in audit trail")

            if user_id is None:
                return self.audit.query_by_event(event_id, after=after, limit=limit)
            return self.audit.query_by_member(event_id, user_id, after=after, limit=limit)

    def _record(self, transition: Transition, action: AuditAction, event_id: int, user_id: int,
                actor_id: int, source: CheckinSource, method: Optional[CheckinMethod],
                noop_reason: str) -> int:
        return self.audit.append(
            event_id=event_id,
            user_id=user_id,
            actor_id=actor_id,
            action=action,
            source=source,
            result=AuditResult.SUCCESS if transition.changed else AuditResult.NOOP,
            method=method,
            reason=None if transition.changed else noop_reason,
        )
