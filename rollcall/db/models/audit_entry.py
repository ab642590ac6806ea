"""Append-only check-in audit entries."""
from datetime import datetime, timezone as tz
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Index, event

from rollcall.db.base import Base


class AuditEntry(Base):
    __tablename__ = "checkin_audit_entries"

    # Monotonic sequence number, the pagination cursor
    id = Column(Integer, primary_key=True, autoincrement=True)
    # No foreign keys: denials against unknown events are recorded too
    event_id = Column(Integer, nullable=False)
    user_id = Column(Integer, nullable=True)  # Null for event-level entries
    actor_id = Column(Integer, nullable=True)  # Null for system actions
    action = Column(String(32), nullable=False)
    method = Column(String(32), nullable=True)
    source = Column(String(16), nullable=False)
    result = Column(String(16), nullable=False)
    reason = Column(String(500), nullable=True)
    comment = Column(String(500), nullable=True)
    show_comment_to_user = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(tz.utc))

    __table_args__ = (
        Index("idx_audit_event_seq", "event_id", "id"),
        Index("idx_audit_member_seq", "event_id", "user_id", "id"),
    )


class ImmutableAuditEntryError(RuntimeError):
    pass


@event.listens_for(AuditEntry, "before_update")
def _refuse_update(mapper, connection, target):
    raise ImmutableAuditEntryError(f"Audit entry {target.id} is immutable")


@event.listens_for(AuditEntry, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise ImmutableAuditEntryError(f"Audit entry {target.id} cannot be deleted")
