"""Pydantic schemas for request/response validation."""
from rollcall.schemas.checkin import (
    CheckinRequest,
    MemberQrCheckinRequest,
    CheckinResponse,
    CheckinStateResponse,
    RejectionResponse,
    CheckinConfigUpdate,
    CheckinConfigResponse,
)
from rollcall.schemas.moderation import ModerationRequest
from rollcall.schemas.token import TokenResponse
from rollcall.schemas.audit import AuditEntryResponse, AuditPageResponse
from rollcall.schemas.common import ErrorResponse, ErrorDetail

__all__ = [
    "CheckinRequest",
    "MemberQrCheckinRequest",
    "CheckinResponse",
    "CheckinStateResponse",
    "RejectionResponse",
    "CheckinConfigUpdate",
    "CheckinConfigResponse",
    "ModerationRequest",
    "TokenResponse",
    "AuditEntryResponse",
    "AuditPageResponse",
    "ErrorResponse",
    "ErrorDetail",
]
