"""Identity and role lookup.

The platform that owns events and memberships is the source of truth for
roles. Services only depend on the ``RoleProvider`` protocol; the default
implementation reads the local ``events`` and ``event_members`` tables.
"""
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from rollcall.core.enums import MemberStatus, Role
from rollcall.db.models import Event, EventMember


class RoleProvider(Protocol):
    def role_of(self, event_id: int, actor_id: Optional[int]) -> Role:
        ...


class MembershipRoleProvider:
    """Roles from event ownership and joined memberships."""

    def __init__(self, db: Session):
        self.db = db

    def role_of(self, event_id: int, actor_id: Optional[int]) -> Role:
        if actor_id is None:
            return Role.NONE

        event = self.db.get(Event, event_id)
        if event is None:
            return Role.NONE
        if event.owner_id == actor_id:
            return Role.OWNER

        member = (
            self.db.query(EventMember)
            .filter(
                EventMember.event_id == event_id,
                EventMember.user_id == actor_id,
                EventMember.status == MemberStatus.JOINED.value,
            )
            .first()
        )
        if member is None:
            return Role.NONE
        return Role[member.role]
