"""QR token schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class TokenResponse(BaseModel):
    token: str
    rotated_at: Optional[datetime] = None
