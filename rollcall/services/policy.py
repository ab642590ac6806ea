"""Check-in authorization policy.

Pure decision functions: no database, no clock, no logging. Every function
here depends only on its arguments, so the whole policy is unit-testable
without a store.
"""
from dataclasses import dataclass
from typing import Optional

from rollcall.core.enums import (
    CheckinMethod,
    DenialReason,
    MethodStatus,
    ModerationAction,
    Role,
    SELF_SERVICE_METHODS,
    STAFF_METHODS,
)
from rollcall.core.exceptions import (
    AuthorizationError,
    BlockedError,
    CheckinError,
    ConfigError,
    NotFoundError,
    TokenError,
)
from rollcall.services.domain import CheckinSnapshot, EventConfig

STAFF_ROLES = frozenset({Role.OWNER, Role.MODERATOR})


@dataclass(frozen=True)
class Decision:
    """Outcome of a policy check: Allow, or Deny with a reason."""
    allowed: bool
    reason: Optional[DenialReason] = None
    message: Optional[str] = None

    @property
    def denied(self) -> bool:
        return not self.allowed


ALLOW = Decision(allowed=True)


def deny(reason: DenialReason, message: Optional[str] = None) -> Decision:
    return Decision(allowed=False, reason=reason, message=message)


def can_attempt(
    event: EventConfig,
    member: CheckinSnapshot,
    method: CheckinMethod,
    actor_role: Role,
    self_service: bool = True,
) -> Decision:
    """Decide whether a check-in attempt may proceed.

    Blocks are evaluated before the event configuration so that a blocked
    method reports ``METHOD_BLOCKED`` whether or not check-in is enabled.
    QR token validity is not checked here; the token manager runs first.

    Args:
        event: Check-in configuration of the event
        member: Current check-in state of the target member
        method: Requested check-in method
        actor_role: Role of whoever performs the attempt
        self_service: True when the actor is checking themself in
    """
    if member.blocked_all:
        return deny(DenialReason.BLOCKED_ALL, "All check-in methods are blocked for this member")

    if method in member.blocked_methods:
        return deny(DenialReason.METHOD_BLOCKED, f"Check-in method {method.value} is blocked for this member")

    if not event.checkin_enabled:
        return deny(DenialReason.CONFIG_DISABLED, "Check-in is not enabled for this event")

    if method not in event.enabled_methods:
        return deny(DenialReason.CONFIG_DISABLED, f"Check-in method {method.value} is not enabled for this event")

    if method in STAFF_METHODS and actor_role not in STAFF_ROLES:
        return deny(DenialReason.NOT_AUTHORIZED, f"Only owners and moderators can record {method.value} check-ins")

    if method in SELF_SERVICE_METHODS and not self_service:
        return deny(DenialReason.NOT_AUTHORIZED, f"{method.value} check-in can only be performed by the member")

    return ALLOW


def can_moderate(actor_role: Role, target_role: Role, action: ModerationAction, is_self: bool = False) -> bool:
    """Role hierarchy check for actions against another member's state.

    The actor must be staff and strictly outrank the target. The one
    exception is unchecking yourself, which every member may always do; when
    the member is blocked there is simply nothing active left to remove.
    """
    if is_self and action in (ModerationAction.UNCHECK, ModerationAction.FORCE_UNCHECK):
        return actor_role > Role.NONE
    if actor_role not in STAFF_ROLES:
        return False
    return actor_role > target_role


def can_manage_event(actor_role: Role) -> bool:
    """Event-level check-in administration: configuration and event token."""
    return actor_role in STAFF_ROLES


def can_manage_member_token(actor_role: Role, target_role: Role, is_self: bool = False) -> bool:
    """Members manage their own personal QR; staff may rotate it for anyone they outrank."""
    if is_self:
        return actor_role > Role.NONE
    return actor_role in STAFF_ROLES and actor_role > target_role


def effective_status(member: CheckinSnapshot, method: CheckinMethod) -> MethodStatus:
    """Display status of one method, with ``blocked_all`` masking everything."""
    if member.blocked_all or method in member.blocked_methods:
        return MethodStatus.BLOCKED
    if method in member.checked_in_methods:
        return MethodStatus.ACTIVE
    return MethodStatus.INACTIVE


_ERRORS = {
    DenialReason.CONFIG_DISABLED: ConfigError,
    DenialReason.BLOCKED_ALL: BlockedError,
    DenialReason.METHOD_BLOCKED: BlockedError,
    DenialReason.NOT_AUTHORIZED: AuthorizationError,
    DenialReason.INVALID_TOKEN: TokenError,
    DenialReason.NOT_FOUND: NotFoundError,
}


def error_for(decision: Decision) -> CheckinError:
    """Translate a Deny decision into the matching exception."""
    if decision.allowed:
        raise ValueError("An Allow decision has no error")
    error_class = _ERRORS[decision.reason]
    return error_class(decision.message or decision.reason.value, decision.reason.value)
