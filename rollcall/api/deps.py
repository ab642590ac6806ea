"""Shared API dependencies."""
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from rollcall.db import get_db, get_db_context
from rollcall.core.security import decode_actor_token
from rollcall.services import CheckinService

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    """
    Resolve the acting user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return decode_actor_token(credentials.credentials)


def get_checkin_service(db: Session = Depends(get_db)) -> CheckinService:
    return CheckinService(db)


__all__ = ["get_db", "get_db_context", "get_current_actor", "get_checkin_service"]
