"""Per-(event, member) check-in aggregate."""
from datetime import datetime, timezone as tz
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from rollcall.db.base import Base


class MemberCheckinState(Base):
    __tablename__ = "member_checkin_states"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, nullable=False)

    checked_in_methods = Column(JSON, nullable=False, default=list)
    blocked_all = Column(Boolean, nullable=False, default=False)
    blocked_methods = Column(JSON, nullable=False, default=list)
    last_checkin_at = Column(DateTime(timezone=True), nullable=True)

    last_rejection_reason = Column(String(500), nullable=True)
    last_rejection_actor_id = Column(Integer, nullable=True)
    last_rejection_method = Column(String(32), nullable=True)
    last_rejected_at = Column(DateTime(timezone=True), nullable=True)
    last_rejection_visible = Column(Boolean, nullable=False, default=True)

    member_token = Column(String(100), nullable=False)
    member_token_key = Column(String(64), nullable=False, index=True)  # HMAC-SHA256 output (64 hex chars)
    member_token_rotated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(tz.utc))

    archived_at = Column(DateTime(timezone=True), nullable=True)
    # Compare-and-swap guard, bumped by every write
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    event = relationship("Event", back_populates="checkin_states")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_checkin_state_member"),
        Index("idx_checkin_states_event", "event_id"),
    )
