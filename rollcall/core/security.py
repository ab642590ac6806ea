"""Security and authentication utilities."""
import secrets
import hmac
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import HTTPException

from rollcall.core import config


def generate_checkin_token(nbytes: Optional[int] = None) -> str:
    """Generate a secure random QR check-in token."""
    return secrets.token_urlsafe(nbytes or config.settings.TOKEN_BYTES)


def create_token_lookup_key(token: str) -> str:
    """Create deterministic lookup key from token using HMAC-SHA256.

    Member tokens are looked up by this key when a personal QR is scanned,
    so the raw secret never has to be used as an index.

    Returns:
        64-character hex string (SHA256 output)
    """
    return hmac.new(
        config.settings.SECRET_KEY.encode(),
        token.encode(),
        hashlib.sha256
    ).hexdigest()


def tokens_match(expected: Optional[str], presented: Optional[str]) -> bool:
    """Constant-time token comparison. A missing token never matches."""
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode(), presented.encode())


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=config.settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, config.settings.SECRET_KEY, algorithm=config.settings.ALGORITHM)
    return encoded_jwt


def create_actor_token(actor_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Create a bearer token identifying ``actor_id``."""
    return create_access_token({"sub": str(actor_id)}, expires_delta)


def decode_actor_token(token: str) -> int:
    """Decode a bearer token and return the actor id it identifies."""
    try:
        payload = jwt.decode(token, config.settings.SECRET_KEY, algorithms=[config.settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token payload")
