"""Check-in audit log.

Append-only system of record behind dispute resolution ("why was I
rejected") and the moderation logs view. Reads are keyset-paginated by
sequence number, so a page boundary never shifts when new entries land
between two requests.
"""
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional

import structlog
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from rollcall.core.config import settings
from rollcall.core.enums import AuditAction, AuditResult, CheckinMethod, CheckinSource
from rollcall.core.exceptions import CheckinError, PersistenceUnavailableError
from rollcall.db.models import AuditEntry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuditPage:
    entries: List[AuditEntry]
    next_cursor: Optional[int]


class AuditLog:
    """Append and query check-in audit entries within a session."""

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        *,
        event_id: int,
        user_id: Optional[int],
        actor_id: Optional[int],
        action: AuditAction,
        source: CheckinSource,
        result: AuditResult = AuditResult.SUCCESS,
        method: Optional[CheckinMethod] = None,
        reason: Optional[str] = None,
        comment: Optional[str] = None,
        show_comment_to_user: bool = True,
    ) -> int:
        """Append an entry to the current transaction and return its sequence number."""
        entry = AuditEntry(
            event_id=event_id,
            user_id=user_id,
            actor_id=actor_id,
            action=action.value,
            method=method.value if method else None,
            source=source.value,
            result=result.value,
            reason=reason,
            comment=comment,
            show_comment_to_user=show_comment_to_user,
        )
        self.db.add(entry)
        self.db.flush()
        return entry.id

    def append_denial(
        self,
        error: CheckinError,
        *,
        event_id: int,
        user_id: Optional[int],
        actor_id: Optional[int],
        source: CheckinSource,
        method: Optional[CheckinMethod] = None,
    ) -> int:
        return self.append(
            event_id=event_id,
            user_id=user_id,
            actor_id=actor_id,
            action=AuditAction.DENIED_ATTEMPT,
            source=source,
            result=AuditResult.DENIED,
            method=method,
            reason=error.code,
            comment=error.message[:500],
        )

    def query_by_member(
        self,
        event_id: int,
        user_id: int,
        after: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> AuditPage:
        query = self.db.query(AuditEntry).filter(
            AuditEntry.event_id == event_id,
            AuditEntry.user_id == user_id,
        )
        return self._page(query, after, limit)

    def query_by_event(
        self,
        event_id: int,
        after: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> AuditPage:
        query = self.db.query(AuditEntry).filter(AuditEntry.event_id == event_id)
        return self._page(query, after, limit)

    def iter_by_member(self, event_id: int, user_id: int, after: Optional[int] = None) -> Iterator[AuditEntry]:
        """Lazily walk a member's trail; restart from any sequence via ``after``."""
        cursor = after
        while True:
            page = self.query_by_member(event_id, user_id, after=cursor)
            yield from page.entries
            if page.next_cursor is None:
                return
            cursor = page.next_cursor

    def iter_by_event(self, event_id: int, after: Optional[int] = None) -> Iterator[AuditEntry]:
        cursor = after
        while True:
            page = self.query_by_event(event_id, after=cursor)
            yield from page.entries
            if page.next_cursor is None:
                return
            cursor = page.next_cursor

    def _page(self, query, after: Optional[int], limit: Optional[int]) -> AuditPage:
        limit = min(limit or settings.AUDIT_PAGE_SIZE, settings.AUDIT_MAX_PAGE_SIZE)
        if after is not None:
            query = query.filter(AuditEntry.id > after)
        # One extra row tells us whether another page exists
        rows = query.order_by(AuditEntry.id.asc()).limit(limit + 1).all()
        has_more = len(rows) > limit
        entries = rows[:limit]
        next_cursor = entries[-1].id if has_more else None
        return AuditPage(entries=entries, next_cursor=next_cursor)


@contextmanager
def recorded_denials(
    db: Session,
    audit: AuditLog,
    *,
    event_id: int,
    user_id: Optional[int],
    actor_id: Optional[int],
    source: CheckinSource,
    method: Optional[CheckinMethod] = None,
):
    """Run a check-in operation, recording policy denials in the audit log.

    Work done before the denial is rolled back; the ``DENIED_ATTEMPT`` entry is
    committed on its own. Database connectivity failures surface as
    ``PersistenceUnavailableError`` and are not recorded as denials.
    """
    try:
        yield
    except CheckinError as exc:
        db.rollback()
        if not exc.audited:
            raise
        try:
            audit.append_denial(
                exc,
                event_id=event_id,
                user_id=user_id,
                actor_id=actor_id,
                source=source,
                method=method,
            )
            db.commit()
        except (OperationalError, InterfaceError) as db_exc:
            raise _storage_unavailable(db, event_id, db_exc) from db_exc
        logger.info(
            "checkin_denied",
            event_id=event_id,
            user_id=user_id,
            actor_id=actor_id,
            method=method.value if method else None,
            reason=exc.code,
        )
        raise
    except (OperationalError, InterfaceError) as exc:
        raise _storage_unavailable(db, event_id, exc) from exc


def _storage_unavailable(db: Session, event_id: int, exc: Exception) -> PersistenceUnavailableError:
    db.rollback()
    logger.error("checkin_persistence_unavailable", event_id=event_id, error=str(exc))
    return PersistenceUnavailableError("Check-in storage is temporarily unavailable")
