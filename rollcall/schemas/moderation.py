"""Moderation schemas."""
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from rollcall.core.constants import MAX_REASON_LENGTH
from rollcall.core.enums import CheckinMethod, ModerationAction
from rollcall.core.sanitization import sanitize_reason


class ModerationRequest(BaseModel):
    action: ModerationAction
    method: Optional[CheckinMethod] = None  # None targets every method
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)
    show_reason_to_user: bool = True
    block: bool = False  # REJECT only: also block `method`, or every method

    @field_validator('action')
    @classmethod
    def moderator_actions_only(cls, v: ModerationAction) -> ModerationAction:
        if v == ModerationAction.UNCHECK:
            raise ValueError("Use FORCE_UNCHECK to remove another member's check-in")
        return v

    @model_validator(mode="after")
    def block_only_with_reject(self) -> "ModerationRequest":
        if self.block and self.action != ModerationAction.REJECT:
            raise ValueError("block can only be combined with REJECT")
        return self

    @field_validator('reason')
    @classmethod
    def sanitize_reason_field(cls, v: Optional[str]) -> Optional[str]:
        """Sanitize free-text reason."""
        if v is None:
            return v
        return sanitize_reason(v)
