"""Check-in schemas."""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from rollcall.core.constants import MAX_TOKEN_LENGTH
from rollcall.core.enums import CheckinMethod, MethodStatus


class CheckinRequest(BaseModel):
    user_id: Optional[int] = None  # Defaults to the authenticated actor
    method: CheckinMethod
    # Required for QR methods. Format is checked by TokenManager
    token: Optional[str] = Field(None, max_length=MAX_TOKEN_LENGTH)


class MemberQrCheckinRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=MAX_TOKEN_LENGTH)


class RejectionResponse(BaseModel):
    reason: str
    method: Optional[CheckinMethod] = None
    rejected_at: datetime


class CheckinStateResponse(BaseModel):
    event_id: int
    user_id: int
    is_checked_in: bool
    checked_in_methods: List[CheckinMethod]
    blocked_all: bool
    blocked_methods: List[CheckinMethod]
    method_status: Dict[CheckinMethod, MethodStatus]
    last_checkin_at: Optional[datetime] = None
    last_rejection: Optional[RejectionResponse] = None
    version: int


class CheckinResponse(BaseModel):
    status: MethodStatus = MethodStatus.ACTIVE
    already_checked_in: bool = False
    state: CheckinStateResponse


class CheckinConfigUpdate(BaseModel):
    checkin_enabled: Optional[bool] = None
    enabled_methods: Optional[List[CheckinMethod]] = None


class CheckinConfigResponse(BaseModel):
    event_id: int
    checkin_enabled: bool
    enabled_methods: List[CheckinMethod]
    event_token_rotated_at: Optional[datetime] = None
