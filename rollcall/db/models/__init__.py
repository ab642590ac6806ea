"""Database models."""
from rollcall.db.models.event import Event
from rollcall.db.models.member import EventMember
from rollcall.db.models.checkin_state import MemberCheckinState
from rollcall.db.models.audit_entry import AuditEntry, ImmutableAuditEntryError

__all__ = ["Event", "EventMember", "MemberCheckinState", "AuditEntry", "ImmutableAuditEntryError"]
