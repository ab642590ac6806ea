from .audit import AuditLog, AuditPage, recorded_denials
from .checkin import CheckinOutcome, CheckinService
from .moderation import ModerationGateway
from .policy import ALLOW, Decision, can_attempt, can_moderate, effective_status
from .roles import MembershipRoleProvider, RoleProvider
from .state_store import CheckinStateStore, Transition
from .tokens import IssuedToken, TokenManager

__all__ = [
    # audit
    "AuditLog",
    "AuditPage",
    "recorded_denials",
    # check-in
    "CheckinOutcome",
    "CheckinService",
    # moderation
    "ModerationGateway",
    # policy
    "ALLOW",
    "Decision",
    "can_attempt",
    "can_moderate",
    "effective_status",
    # roles
    "MembershipRoleProvider",
    "RoleProvider",
    # state
    "CheckinStateStore",
    "Transition",
    # tokens
    "IssuedToken",
    "TokenManager",
]
