"""Audit trail schemas."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class AuditEntryResponse(BaseModel):
    sequence: int
    event_id: int
    user_id: Optional[int] = None
    actor_id: Optional[int] = None
    action: str
    method: Optional[str] = None
    source: str
    result: str
    reason: Optional[str] = None
    comment: Optional[str] = None
    created_at: datetime


class AuditPageResponse(BaseModel):
    entries: List[AuditEntryResponse]
    next_cursor: Optional[int] = None
