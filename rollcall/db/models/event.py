"""Event model.

Only the check-in configuration of an event lives here; everything else about
events belongs to the platform that owns them.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from sqlalchemy.orm import relationship

from rollcall.db.base import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, nullable=False, index=True)
    checkin_enabled = Column(Boolean, nullable=False, default=False)
    enabled_methods = Column(JSON, nullable=False, default=list)  # list of CheckinMethod values
    event_token = Column(String(100), nullable=True)
    event_token_rotated_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    members = relationship("EventMember", back_populates="event", cascade="all, delete-orphan")
    checkin_states = relationship("MemberCheckinState", back_populates="event")
