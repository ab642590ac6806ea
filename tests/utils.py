from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from rollcall.core.enums import CheckinMethod, MemberStatus, Role
from rollcall.core.security import create_actor_token, generate_checkin_token
from rollcall.db.models import Event, EventMember

OWNER_ID = 1
MODERATOR_ID = 2
PARTICIPANT_ID = 3
OTHER_PARTICIPANT_ID = 4
OUTSIDER_ID = 99

ALL_METHODS = tuple(CheckinMethod)


def create_event(
    session: Session,
    owner_id: int = OWNER_ID,
    checkin_enabled: bool = True,
    methods: Iterable[CheckinMethod] = ALL_METHODS,
    with_token: bool = True,
) -> Event:
    """Create an event with the given check-in configuration.

    Args:
        session: SQLAlchemy session
        owner_id: User id of the event owner
        checkin_enabled: Master switch for check-in
        methods: Enabled check-in methods
        with_token: Issue an event QR token up front
    """
    event = Event(
        owner_id=owner_id,
        checkin_enabled=checkin_enabled,
        enabled_methods=sorted(m.value for m in methods),
        event_token=generate_checkin_token() if with_token else None,
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


def add_member(
    session: Session,
    event: Event,
    user_id: int,
    role: Role = Role.PARTICIPANT,
    status: MemberStatus = MemberStatus.JOINED,
) -> EventMember:
    member = EventMember(event_id=event.id, user_id=user_id, role=role.name, status=status.value)
    session.add(member)
    session.commit()
    return member


def setup_event(session: Session, **event_kwargs) -> Event:
    """Event with one moderator and two participants; the owner needs no membership row."""
    event = create_event(session, **event_kwargs)
    add_member(session, event, MODERATOR_ID, Role.MODERATOR)
    add_member(session, event, PARTICIPANT_ID)
    add_member(session, event, OTHER_PARTICIPANT_ID)
    return event


def auth_headers(actor_id: int, token: Optional[str] = None) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token or create_actor_token(actor_id)}"}
