"""Event membership model backing the default role provider."""
from datetime import datetime, timezone as tz
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from rollcall.db.base import Base
from rollcall.core.enums import MemberStatus, Role


class EventMember(Base):
    __tablename__ = "event_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    role = Column(String(16), nullable=False, default=Role.PARTICIPANT.name)  # Role member name
    status = Column(String(16), nullable=False, default=MemberStatus.JOINED.value)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(tz.utc))

    # Relationships
    event = relationship("Event", back_populates="members")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_member"),
    )
