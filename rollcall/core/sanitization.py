"""Input sanitization utilities."""
import re
from typing import Optional

from rollcall.core.constants import MAX_REASON_LENGTH, MAX_TOKEN_LENGTH


def sanitize_text(text: str, max_length: Optional[int] = None, strip_html: bool = True) -> str:
    """
    Sanitize text input to prevent XSS attacks.

    Strips HTML tags and normalizes whitespace. Entities are not escaped;
    clients escape on render and double-escaping would show literally.

    Args:
        text: The input text to sanitize
        max_length: Optional maximum length to enforce
        strip_html: Whether to strip HTML tags (default True)

    Returns:
        Sanitized text with HTML tags removed and whitespace normalized

    Raises:
        ValueError: If text exceeds max_length or contains dangerous patterns
    """
    if not isinstance(text, str):
        raise ValueError("Input must be a string")

    sanitized = text.strip()

    if max_length and len(sanitized) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    if strip_html:
        sanitized = re.sub(r'<[^>]*>', '', sanitized)

    # Malformed tags survive the strip above
    if '<' in sanitized or '>' in sanitized:
        raise ValueError("Input contains invalid HTML-like patterns")

    sanitized = re.sub(r'\s+', ' ', sanitized)

    return sanitized


def sanitize_reason(reason: str) -> Optional[str]:
    """
    Sanitize a moderator-supplied reason (rejection, block).

    Returns:
        The cleaned reason, or None when nothing remains after cleaning
    """
    sanitized = sanitize_text(reason, max_length=MAX_REASON_LENGTH)
    return sanitized or None


def validate_token_format(token: str) -> str:
    """
    Validate token format before processing.

    Tokens are URL-safe base64 strings. Rejecting malformed input early keeps
    garbage scans away from the database.

    Raises:
        ValueError: If token format is invalid
    """
    if not isinstance(token, str):
        raise ValueError("Token must be a string")

    token = token.strip()

    if not token:
        raise ValueError("Token cannot be empty")

    if len(token) > MAX_TOKEN_LENGTH:
        raise ValueError(f"Token exceeds maximum length of {MAX_TOKEN_LENGTH} characters")

    if not re.match(r'^[A-Za-z0-9_-]+$', token):
        raise ValueError("Token format is invalid (must be URL-safe base64)")

    return token
