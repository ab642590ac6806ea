"""Enumerations shared by the check-in domain, schemas and database models."""
from enum import Enum, IntEnum


class CheckinMethod(str, Enum):
    """Verification channels a member can be checked in through."""
    SELF_MANUAL = "SELF_MANUAL"
    MODERATOR_PANEL = "MODERATOR_PANEL"
    EVENT_QR = "EVENT_QR"
    USER_QR = "USER_QR"


class Role(IntEnum):
    """Event roles, ordered so that a higher value outranks a lower one."""
    NONE = 0
    PARTICIPANT = 1
    MODERATOR = 2
    OWNER = 3


class MemberStatus(str, Enum):
    JOINED = "JOINED"
    LEFT = "LEFT"


class MethodStatus(str, Enum):
    """Effective per-method status shown to clients."""
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"


class ModerationAction(str, Enum):
    BLOCK = "BLOCK"
    UNBLOCK = "UNBLOCK"
    REJECT = "REJECT"
    FORCE_UNCHECK = "FORCE_UNCHECK"
    # Used only for hierarchy checks on self-service uncheck
    UNCHECK = "UNCHECK"


class AuditAction(str, Enum):
    CHECKIN = "CHECKIN"
    UNCHECK = "UNCHECK"
    BLOCK = "BLOCK"
    UNBLOCK = "UNBLOCK"
    REJECT = "REJECT"
    DENIED_ATTEMPT = "DENIED_ATTEMPT"
    TOKEN_ROTATED = "TOKEN_ROTATED"
    CONFIG_CHANGED = "CONFIG_CHANGED"


class AuditResult(str, Enum):
    SUCCESS = "SUCCESS"
    NOOP = "NOOP"
    DENIED = "DENIED"


class CheckinSource(str, Enum):
    """Who initiated an audited action."""
    USER = "USER"
    MODERATOR = "MODERATOR"
    SYSTEM = "SYSTEM"


class DenialReason(str, Enum):
    CONFIG_DISABLED = "CONFIG_DISABLED"
    BLOCKED_ALL = "BLOCKED_ALL"
    METHOD_BLOCKED = "METHOD_BLOCKED"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    INVALID_TOKEN = "INVALID_TOKEN"
    NOT_FOUND = "NOT_FOUND"


SELF_SERVICE_METHODS = frozenset({CheckinMethod.SELF_MANUAL, CheckinMethod.EVENT_QR})
STAFF_METHODS = frozenset({CheckinMethod.MODERATOR_PANEL, CheckinMethod.USER_QR})
