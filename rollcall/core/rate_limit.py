"""Rate limiting configuration."""
import os
from slowapi import Limiter
from slowapi.util import get_remote_address


def get_client_ip(request):
    """Get client IP for rate limiting, considering proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first one
        return forwarded.split(",")[0].strip()

    return get_remote_address(request)


# Uses Redis if REDIS_URL is set (production), falls back to memory for local dev
limiter = Limiter(
    key_func=get_client_ip,
    default_limits=["300/minute"],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
    strategy="fixed-window"
)

# Venue entry shares a handful of public IPs (venue WiFi, mobile carrier NAT),
# so check-in limits are generous. Token rotation is a staff action.
RATE_LIMITS = {
    "checkin": "600/minute",
    "member_qr_scan": "600/minute",
    "moderation": "120/minute",
    "token_rotation": "30/minute",
    "audit_read": "120/minute",
}
