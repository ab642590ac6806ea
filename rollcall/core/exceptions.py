"""Check-in error taxonomy.

Every error a check-in operation can end with derives from ``CheckinError``.
Policy outcomes (``audited = True``) are deterministic and always recorded in
the audit log as a ``DENIED_ATTEMPT``; conflicts and persistence faults are
system conditions and are never recorded as denials.
"""
from typing import Optional

from rollcall.core.enums import DenialReason


class CheckinError(Exception):
    """Base class for check-in errors surfaced at the API boundary."""

    code: str = "CHECKIN_ERROR"
    http_status: int = 400
    audited: bool = True

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ConfigError(CheckinError):
    """Check-in or the requested method is disabled for the event."""
    code = DenialReason.CONFIG_DISABLED.value
    http_status = 403


class AuthorizationError(CheckinError):
    """The actor lacks the role the operation requires."""
    code = DenialReason.NOT_AUTHORIZED.value
    http_status = 403


class BlockedError(CheckinError):
    """The member is blocked, either for all methods or for this one."""
    code = DenialReason.METHOD_BLOCKED.value
    http_status = 403


class TokenError(CheckinError):
    """Invalid, rotated-away or missing QR token. Refresh the QR and retry."""
    code = DenialReason.INVALID_TOKEN.value
    http_status = 403


class NotFoundError(CheckinError):
    code = DenialReason.NOT_FOUND.value
    http_status = 404


class ConflictError(CheckinError):
    """Optimistic concurrency retries were exhausted."""
    code = "CONFLICT"
    http_status = 409
    audited = False


class PersistenceUnavailableError(CheckinError):
    """The database could not be reached. Transient, safe to retry later."""
    code = "PERSISTENCE_UNAVAILABLE"
    http_status = 503
    audited = False


class StaleStateError(Exception):
    """Compare-and-swap on a check-in aggregate lost the race.

    Internal to the state store; callers only ever see ``ConflictError``.
    """
