"""Immutable check-in values and the per-member state machine.

The functions at the bottom of this module are the only way a
``CheckinSnapshot`` changes. They are pure: the state store feeds them the
freshly read aggregate and writes back whatever they return under a version
check. Per method the machine is::

    Inactive --checkin--> Active --uncheck--> Inactive
    {Inactive, Active} --block--> Blocked --unblock--> Inactive

``blocked_all`` is a member-level mask layered on top; it never rewrites the
individually recorded ``blocked_methods``.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import FrozenSet, Iterable, Optional

from rollcall.core.enums import CheckinMethod, DenialReason
from rollcall.core.exceptions import BlockedError


def _methods(values: Optional[Iterable]) -> FrozenSet[CheckinMethod]:
    return frozenset(CheckinMethod(v) for v in (values or ()))


def serialize_methods(methods: Iterable[CheckinMethod]) -> list:
    """Stable JSON representation of a method set."""
    return sorted(m.value for m in methods)


@dataclass(frozen=True)
class EventConfig:
    event_id: int
    checkin_enabled: bool
    enabled_methods: FrozenSet[CheckinMethod] = frozenset()

    @classmethod
    def from_model(cls, event) -> "EventConfig":
        return cls(
            event_id=event.id,
            checkin_enabled=bool(event.checkin_enabled),
            enabled_methods=_methods(event.enabled_methods),
        )


@dataclass(frozen=True)
class Rejection:
    reason: str
    actor_id: Optional[int]
    rejected_at: datetime
    method: Optional[CheckinMethod] = None
    visible_to_member: bool = True


@dataclass(frozen=True)
class CheckinSnapshot:
    event_id: int
    user_id: int
    checked_in_methods: FrozenSet[CheckinMethod] = frozenset()
    blocked_all: bool = False
    blocked_methods: FrozenSet[CheckinMethod] = frozenset()
    last_rejection: Optional[Rejection] = None
    last_checkin_at: Optional[datetime] = None
    member_token: Optional[str] = field(default=None, repr=False)
    member_token_key: Optional[str] = field(default=None, repr=False)
    member_token_rotated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_checked_in(self) -> bool:
        return bool(self.checked_in_methods) and not self.blocked_all

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @classmethod
    def from_model(cls, row) -> "CheckinSnapshot":
        rejection = None
        if row.last_rejected_at is not None:
            rejection = Rejection(
                reason=row.last_rejection_reason,
                actor_id=row.last_rejection_actor_id,
                rejected_at=row.last_rejected_at,
                method=CheckinMethod(row.last_rejection_method) if row.last_rejection_method else None,
                visible_to_member=bool(row.last_rejection_visible),
            )
        return cls(
            event_id=row.event_id,
            user_id=row.user_id,
            checked_in_methods=_methods(row.checked_in_methods),
            blocked_all=bool(row.blocked_all),
            blocked_methods=_methods(row.blocked_methods),
            last_rejection=rejection,
            last_checkin_at=row.last_checkin_at,
            member_token=row.member_token,
            member_token_key=row.member_token_key,
            member_token_rotated_at=row.member_token_rotated_at,
            archived_at=row.archived_at,
            version=row.version,
        )

    def to_values(self) -> dict:
        """Column values for a compare-and-swap write (version excluded)."""
        rejection = self.last_rejection
        return {
            "checked_in_methods": serialize_methods(self.checked_in_methods),
            "blocked_all": self.blocked_all,
            "blocked_methods": serialize_methods(self.blocked_methods),
            "last_checkin_at": self.last_checkin_at,
            "last_rejection_reason": rejection.reason if rejection else None,
            "last_rejection_actor_id": rejection.actor_id if rejection else None,
            "last_rejection_method": rejection.method.value if rejection and rejection.method else None,
            "last_rejected_at": rejection.rejected_at if rejection else None,
            "last_rejection_visible": rejection.visible_to_member if rejection else True,
            "member_token": self.member_token,
            "member_token_key": self.member_token_key,
            "member_token_rotated_at": self.member_token_rotated_at,
            "archived_at": self.archived_at,
        }


def checkin(state: CheckinSnapshot, method: CheckinMethod, now: datetime) -> CheckinSnapshot:
    # Re-checked here because a block may have landed after the policy decision
    if state.blocked_all:
        raise BlockedError("All check-in methods are blocked for this member", DenialReason.BLOCKED_ALL.value)
    if method in state.blocked_methods:
        raise BlockedError(f"Check-in method {method.value} is blocked for this member")
    if method in state.checked_in_methods:
        return state
    return replace(state, checked_in_methods=state.checked_in_methods | {method}, last_checkin_at=now)


def uncheck(state: CheckinSnapshot, method: Optional[CheckinMethod] = None) -> CheckinSnapshot:
    """Remove one method, or every method when ``method`` is None."""
    if method is None:
        return replace(state, checked_in_methods=frozenset())
    return replace(state, checked_in_methods=state.checked_in_methods - {method})


def block(state: CheckinSnapshot, method: Optional[CheckinMethod] = None) -> CheckinSnapshot:
    """Block one method, or all methods when ``method`` is None.

    The affected methods leave ``checked_in_methods`` in the same step.
    """
    if method is None:
        return replace(state, blocked_all=True, checked_in_methods=frozenset())
    return replace(
        state,
        blocked_methods=state.blocked_methods | {method},
        checked_in_methods=state.checked_in_methods - {method},
    )


def unblock(state: CheckinSnapshot, method: Optional[CheckinMethod] = None) -> CheckinSnapshot:
    """Lift a block. Never restores previously active methods."""
    if method is None:
        return replace(state, blocked_all=False)
    return replace(state, blocked_methods=state.blocked_methods - {method})


def reject(state: CheckinSnapshot, rejection: Rejection) -> CheckinSnapshot:
    """Annotate the member with a rejection. Check-in status is unchanged."""
    return replace(state, last_rejection=rejection)


def rotate_member_token(state: CheckinSnapshot, token: str, token_key: str, now: datetime) -> CheckinSnapshot:
    return replace(state, member_token=token, member_token_key=token_key, member_token_rotated_at=now)


def archive(state: CheckinSnapshot, now: datetime) -> CheckinSnapshot:
    if state.is_archived:
        return state
    return replace(state, checked_in_methods=frozenset(), archived_at=now)
