"""Database base class and model imports."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import all models here for Alembic to detect them
from rollcall.db.models.event import Event  # noqa: F401, E402
from rollcall.db.models.member import EventMember  # noqa: F401, E402
from rollcall.db.models.checkin_state import MemberCheckinState  # noqa: F401, E402
from rollcall.db.models.audit_entry import AuditEntry  # noqa: F401, E402
