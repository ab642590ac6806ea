"""Authoritative check-in state per (event, member).

Every write is a compare-and-swap on the aggregate's ``version``: read the
row, run a pure transition from ``rollcall.services.domain``, then
``UPDATE ... WHERE version = :expected``. Losing the race re-reads and
retries with randomized exponential backoff. When the retries run out the
caller gets ``ConflictError``.

The store flushes but never commits. The calling service appends the audit
entry and commits both in one transaction.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from rollcall.core.config import settings
from rollcall.core.enums import CheckinMethod
from rollcall.core.exceptions import ConflictError, NotFoundError, StaleStateError
from rollcall.core.security import create_token_lookup_key, generate_checkin_token
from rollcall.core.utils import utcnow
from rollcall.db.models import MemberCheckinState
from rollcall.services import domain
from rollcall.services.domain import CheckinSnapshot, Rejection

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Transition:
    """Result of an ``apply_*`` call. ``changed`` is False for idempotent replays."""
    state: CheckinSnapshot
    changed: bool


class CheckinStateStore:
    """Versioned check-in aggregates with optimistic concurrency."""

    def __init__(
        self,
        db: Session,
        max_attempts: Optional[int] = None,
        max_wait: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.max_attempts = max_attempts or settings.CHECKIN_MAX_RETRIES
        self.max_wait = settings.CHECKIN_RETRY_MAX_WAIT if max_wait is None else max_wait
        self.clock = clock

    # Reads

    def get(self, event_id: int, user_id: int) -> Optional[CheckinSnapshot]:
        row = self._load(event_id, user_id)
        return CheckinSnapshot.from_model(row) if row is not None else None

    def peek(self, event_id: int, user_id: int) -> CheckinSnapshot:
        """Current state, or the default (inactive, unblocked) one without creating it."""
        state = self.get(event_id, user_id)
        if state is None:
            return CheckinSnapshot(event_id=event_id, user_id=user_id)
        return state

    def get_or_create(self, event_id: int, user_id: int) -> CheckinSnapshot:
        row = self._load(event_id, user_id)
        if row is None:
            try:
                row = self._create(event_id, user_id)
            except StaleStateError:
                row = self._load(event_id, user_id)
        return CheckinSnapshot.from_model(row)

    def find_by_token_key(self, event_id: int, token_key: str) -> Optional[CheckinSnapshot]:
        row = (
            self.db.query(MemberCheckinState)
            .filter(
                MemberCheckinState.event_id == event_id,
                MemberCheckinState.member_token_key == token_key,
            )
            .first()
        )
        return CheckinSnapshot.from_model(row) if row is not None else None

    # Writes

    def apply_checkin(self, event_id: int, user_id: int, method: CheckinMethod) -> Transition:
        """Activate ``method``. Requires a prior Allow from the policy engine.

        Re-applying an active method succeeds without a write.
        """
        now = self.clock()
        return self._apply(event_id, user_id, lambda s: domain.checkin(s, method, now))

    def apply_uncheck(self, event_id: int, user_id: int, method: Optional[CheckinMethod] = None) -> Transition:
        """Deactivate ``method``, or every method when omitted."""
        return self._apply(event_id, user_id, lambda s: domain.uncheck(s, method))

    def apply_block(self, event_id: int, user_id: int, method: Optional[CheckinMethod] = None) -> Transition:
        """Block ``method`` (or all methods when None) and drop it from the active set."""
        return self._apply(event_id, user_id, lambda s: domain.block(s, method))

    def apply_unblock(self, event_id: int, user_id: int, method: Optional[CheckinMethod] = None) -> Transition:
        return self._apply(event_id, user_id, lambda s: domain.unblock(s, method))

    def apply_reject(
        self,
        event_id: int,
        user_id: int,
        method: Optional[CheckinMethod],
        reason: str,
        actor_id: int,
        show_reason_to_user: bool = True,
    ) -> Transition:
        rejection = Rejection(
            reason=reason,
            actor_id=actor_id,
            rejected_at=self.clock(),
            method=method,
            visible_to_member=show_reason_to_user,
        )
        return self._apply(event_id, user_id, lambda s: domain.reject(s, rejection))

    def apply_member_token(self, event_id: int, user_id: int, token: str) -> Transition:
        token_key = create_token_lookup_key(token)
        now = self.clock()
        return self._apply(event_id, user_id, lambda s: domain.rotate_member_token(s, token, token_key, now))

    def archive(self, event_id: int, user_id: int) -> Optional[Transition]:
        """Archive the aggregate when the membership goes away. Never deletes."""
        if self._load(event_id, user_id) is None:
            return None
        now = self.clock()
        return self._apply(event_id, user_id, lambda s: domain.archive(s, now), include_archived=True)

    # Internals

    def _load(self, event_id: int, user_id: int) -> Optional[MemberCheckinState]:
        return (
            self.db.query(MemberCheckinState)
            .filter(
                MemberCheckinState.event_id == event_id,
                MemberCheckinState.user_id == user_id,
            )
            .populate_existing()
            .first()
        )

    def _create(self, event_id: int, user_id: int) -> MemberCheckinState:
        token = generate_checkin_token()
        row = MemberCheckinState(
            event_id=event_id,
            user_id=user_id,
            checked_in_methods=[],
            blocked_all=False,
            blocked_methods=[],
            member_token=token,
            member_token_key=create_token_lookup_key(token),
            member_token_rotated_at=self.clock(),
            version=1,
        )
        # Creation is always the first write of a transaction, so a full
        # rollback discards nothing but the losing insert
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise StaleStateError(f"Concurrent creation of check-in state {event_id}/{user_id}")
        return row

    def _apply(
        self,
        event_id: int,
        user_id: int,
        transition: Callable[[CheckinSnapshot], CheckinSnapshot],
        include_archived: bool = False,
    ) -> Transition:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random_exponential(multiplier=0.01, max=self.max_wait),
            retry=retry_if_exception_type(StaleStateError),
            before_sleep=lambda retry_state: logger.warning(
                "checkin_conflict_retry",
                event_id=event_id,
                user_id=user_id,
                attempt=retry_state.attempt_number,
            ),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    return self._apply_once(event_id, user_id, transition, include_archived)
        except StaleStateError:
            logger.error(
                "checkin_conflict_exhausted",
                event_id=event_id,
                user_id=user_id,
                attempts=self.max_attempts,
            )
            raise ConflictError(
                f"Check-in state for member {user_id} kept changing; try again"
            )

    def _apply_once(
        self,
        event_id: int,
        user_id: int,
        transition: Callable[[CheckinSnapshot], CheckinSnapshot],
        include_archived: bool,
    ) -> Transition:
        row = self._load(event_id, user_id)
        if row is None:
            row = self._create(event_id, user_id)

        current = CheckinSnapshot.from_model(row)
        if current.is_archived and not include_archived:
            raise NotFoundError("Membership not found")

        proposed = transition(current)
        if proposed == current:
            return Transition(state=current, changed=False)

        result = self.db.execute(
            update(MemberCheckinState)
            .where(
                MemberCheckinState.id == row.id,
                MemberCheckinState.version == current.version,
            )
            .values(version=current.version + 1, **proposed.to_values())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleStateError(
                f"Check-in state {event_id}/{user_id} moved past version {current.version}"
            )

        self.db.expire(row)
        written = CheckinSnapshot.from_model(self._load(event_id, user_id))
        return Transition(state=written, changed=True)
