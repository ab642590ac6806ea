"""Common response schemas."""
from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Error detail structure."""
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response for documentation."""
    success: bool = False
    error: ErrorDetail
