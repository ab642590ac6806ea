"""Application constants.

This module contains magic strings and numbers used throughout the application.
Centralizing these values makes them easier to maintain and modify.
"""

# Check-in tokens
# 32 random bytes encode to 43 URL-safe base64 characters
CHECKIN_TOKEN_BYTES = 32
MAX_TOKEN_LENGTH = 100

# Free-text moderation input
MAX_REASON_LENGTH = 500
DEFAULT_REJECTION_REASON = "Check-in rejected by organizer"

# Audit trail pagination
AUDIT_PAGE_SIZE = 50
AUDIT_MAX_PAGE_SIZE = 200

# Optimistic concurrency
# Attempts include the first try; wait is randomized exponential, capped in seconds
CHECKIN_MAX_RETRIES = 5
CHECKIN_RETRY_MAX_WAIT = 0.5

# JWT Token Configuration
# Token expiration time in minutes (8 hours)
ACCESS_TOKEN_EXPIRE_MINUTES = 480
