"""Shared utilities for service layer."""
from typing import Optional

from sqlalchemy.orm import Session

from rollcall.core.enums import Role
from rollcall.core.exceptions import NotFoundError
from rollcall.db.models import Event
from rollcall.services.roles import RoleProvider


def get_event_or_raise(db: Session, event_id: int) -> Event:
    """
    Get event by ID.

    Raises:
        NotFoundError: if the event does not exist
    """
    event = db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return event


def require_member_role(roles: RoleProvider, event_id: int, user_id: Optional[int]) -> Role:
    """
    Role of a member whose check-in state is being read or changed.

    Raises:
        NotFoundError: if the user is not a member of the event
    """
    role = roles.role_of(event_id, user_id)
    if role == Role.NONE:
        raise NotFoundError("Membership not found")
    return role
