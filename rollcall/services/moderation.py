"""Privileged check-in actions.

``ModerationGateway`` is the only path to block, unblock, reject and
force-uncheck a member. Each call resolves both roles, checks the hierarchy,
applies the state change and appends the audit entry, then commits them
together. A refused call leaves the member's state untouched and is recorded
as a ``DENIED_ATTEMPT``.
"""
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from rollcall.core.constants import DEFAULT_REJECTION_REASON
from rollcall.core.enums import AuditAction, AuditResult, CheckinMethod, CheckinSource, ModerationAction
from rollcall.core.exceptions import AuthorizationError
from rollcall.services import policy
from rollcall.services.audit import AuditLog, recorded_denials
from rollcall.services.domain import CheckinSnapshot
from rollcall.services.roles import RoleProvider
from rollcall.services.state_store import CheckinStateStore, Transition
from rollcall.services.utils import get_event_or_raise, require_member_role

logger = structlog.get_logger(__name__)

_AUDIT_ACTIONS = {
    ModerationAction.BLOCK: AuditAction.BLOCK,
    ModerationAction.UNBLOCK: AuditAction.UNBLOCK,
    ModerationAction.REJECT: AuditAction.REJECT,
    ModerationAction.FORCE_UNCHECK: AuditAction.UNCHECK,
}


class ModerationGateway:
    def __init__(self, db: Session, store: CheckinStateStore, audit: AuditLog, roles: RoleProvider):
        self.db = db
        self.store = store
        self.audit = audit
        self.roles = roles

    def moderate(
        self,
        event_id: int,
        target_user_id: int,
        actor_id: int,
        action: ModerationAction,
        method: Optional[CheckinMethod] = None,
        reason: Optional[str] = None,
        show_reason_to_user: bool = True,
        block: bool = False,
    ) -> CheckinSnapshot:
        """Dispatch a moderation request to the matching action.

        ``block`` only applies to REJECT.
        """
        if action == ModerationAction.BLOCK:
            return self.block(event_id, target_user_id, actor_id, method, reason)
        if action == ModerationAction.UNBLOCK:
            return self.unblock(event_id, target_user_id, actor_id, method, reason)
        if action == ModerationAction.REJECT:
            return self.reject(event_id, target_user_id, actor_id, method, reason, show_reason_to_user, block)
        if action in (ModerationAction.FORCE_UNCHECK, ModerationAction.UNCHECK):
            return self.force_uncheck(event_id, target_user_id, actor_id, method, reason)
        raise ValueError(f"Unsupported moderation action: {action}")

    def block(self, event_id: int, target_user_id: int, actor_id: int,
              method: Optional[CheckinMethod] = None, reason: Optional[str] = None) -> CheckinSnapshot:
        """Block one method, or every method when ``method`` is None."""
        return self._run(
            ModerationAction.BLOCK, event_id, target_user_id, actor_id, method,
            lambda: self.store.apply_block(event_id, target_user_id, method),
            reason=reason,
        )

    def unblock(self, event_id: int, target_user_id: int, actor_id: int,
                method: Optional[CheckinMethod] = None, reason: Optional[str] = None) -> CheckinSnapshot:
        return self._run(
            ModerationAction.UNBLOCK, event_id, target_user_id, actor_id, method,
            lambda: self.store.apply_unblock(event_id, target_user_id, method),
            reason=reason,
        )

    def reject(self, event_id: int, target_user_id: int, actor_id: int,
               method: Optional[CheckinMethod] = None, reason: Optional[str] = None,
               show_reason_to_user: bool = True, block: bool = False) -> CheckinSnapshot:
        """Record a rejection.

        Active check-ins are left as they are unless ``block`` is set, in
        which case ``method`` (or every method when None) is blocked in the
        same transaction and logged as its own BLOCK entry.
        """
        reason = reason or DEFAULT_REJECTION_REASON

        def mutate() -> Transition:
            if block:
                blocked = self.store.apply_block(event_id, target_user_id, method)
                self._append(ModerationAction.BLOCK, blocked, event_id, target_user_id, actor_id, method, reason,
                             show_reason_to_user)
            return self.store.apply_reject(event_id, target_user_id, method, reason, actor_id, show_reason_to_user)

        return self._run(
            ModerationAction.REJECT, event_id, target_user_id, actor_id, method,
            mutate,
            reason=reason,
            show_comment_to_user=show_reason_to_user,
        )

    def force_uncheck(self, event_id: int, target_user_id: int, actor_id: int,
                      method: Optional[CheckinMethod] = None, reason: Optional[str] = None) -> CheckinSnapshot:
        return self._run(
            ModerationAction.FORCE_UNCHECK, event_id, target_user_id, actor_id, method,
            lambda: self.store.apply_uncheck(event_id, target_user_id, method),
            reason=reason,
        )

    def _run(self, action, event_id, target_user_id, actor_id, method, mutate,
             reason=None, show_comment_to_user=True) -> CheckinSnapshot:
        is_self = actor_id == target_user_id
        source = CheckinSource.USER if is_self else CheckinSource.MODERATOR
        with recorded_denials(self.db, self.audit, event_id=event_id, user_id=target_user_id,
                              actor_id=actor_id, source=source, method=method):
            get_event_or_raise(self.db, event_id)
            self._authorize(event_id, target_user_id, actor_id, action, is_self)

            transition: Transition = mutate()
            self._append(action, transition, event_id, target_user_id, actor_id, method, reason,
                         show_comment_to_user)
            self.db.commit()

        logger.info(
            "moderation_applied",
            event_id=event_id,
            user_id=target_user_id,
            actor_id=actor_id,
            action=action.value,
            method=method.value if method else None,
            changed=transition.changed,
        )
        return transition.state

    def _append(self, action, transition, event_id, target_user_id, actor_id, method, reason,
                show_comment_to_user=True) -> int:
        return self.audit.append(
            event_id=event_id,
            user_id=target_user_id,
            actor_id=actor_id,
            action=_AUDIT_ACTIONS[action],
            source=CheckinSource.USER if actor_id == target_user_id else CheckinSource.MODERATOR,
            result=AuditResult.SUCCESS if transition.changed else AuditResult.NOOP,
            method=method,
            reason=reason,
            comment=reason,
            show_comment_to_user=show_comment_to_user,
        )

    def _authorize(self, event_id: int, target_user_id: int, actor_id: int,
                   action: ModerationAction, is_self: bool) -> None:
        target_role = require_member_role(self.roles, event_id, target_user_id)
        actor_role = target_role if is_self else self.roles.role_of(event_id, actor_id)
        if not policy.can_moderate(actor_role, target_role, action, is_self=is_self):
            raise AuthorizationError(
                f"You do not have permission to {action.value.lower().replace('_', '-')} this member"
            )
