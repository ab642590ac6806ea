"""Unit tests for the check-in audit log."""
import pytest
from sqlalchemy.exc import OperationalError

from rollcall.core.enums import AuditAction, AuditResult, CheckinMethod, CheckinSource
from rollcall.core.exceptions import AuthorizationError, ConflictError, PersistenceUnavailableError
from rollcall.db.models import AuditEntry, ImmutableAuditEntryError
from rollcall.services import AuditLog, recorded_denials

from tests.utils import MODERATOR_ID, OTHER_PARTICIPANT_ID, PARTICIPANT_ID


def _append(audit, event_id, user_id=PARTICIPANT_ID, action=AuditAction.CHECKIN):
    return audit.append(
        event_id=event_id,
        user_id=user_id,
        actor_id=user_id,
        action=action,
        source=CheckinSource.USER,
        method=CheckinMethod.SELF_MANUAL,
    )


@pytest.mark.unit
class TestAppend:
    """Test appending entries."""

    def test_sequence_numbers_increase(self, db_session):
        audit = AuditLog(db_session)
        first = _append(audit, 1)
        second = _append(audit, 1, user_id=OTHER_PARTICIPANT_ID)
        third = _append(audit, 1)
        assert first < second < third

    def test_entry_fields(self, db_session):
        audit = AuditLog(db_session)
        seq = _append(audit, 1)
        db_session.commit()
        entry = db_session.get(AuditEntry, seq)
        assert entry.action == "CHECKIN"
        assert entry.method == "SELF_MANUAL"
        assert entry.source == "USER"
        assert entry.result == "SUCCESS"
        assert entry.created_at is not None

    def test_entries_cannot_be_modified(self, db_session):
        audit = AuditLog(db_session)
        seq = _append(audit, 1)
        db_session.commit()

        entry = db_session.get(AuditEntry, seq)
        entry.comment = "rewritten"
        with pytest.raises(ImmutableAuditEntryError):
            db_session.flush()
        db_session.rollback()

    def test_entries_cannot_be_deleted(self, db_session):
        audit = AuditLog(db_session)
        seq = _append(audit, 1)
        db_session.commit()

        db_session.delete(db_session.get(AuditEntry, seq))
        with pytest.raises(ImmutableAuditEntryError):
            db_session.flush()
        db_session.rollback()
        assert db_session.get(AuditEntry, seq) is not None


@pytest.mark.unit
class TestQueries:
    """Test keyset pagination."""

    def test_query_by_member_filters(self, db_session):
        audit = AuditLog(db_session)
        _append(audit, 1)
        _append(audit, 1, user_id=OTHER_PARTICIPANT_ID)
        _append(audit, 2)

        page = audit.query_by_member(1, PARTICIPANT_ID)
        assert [e.user_id for e in page.entries] == [PARTICIPANT_ID]
        assert page.next_cursor is None

    def test_pages_are_stable_under_appends(self, db_session):
        audit = AuditLog(db_session)
        seqs = [_append(audit, 1) for _ in range(4)]

        first = audit.query_by_event(1, limit=2)
        assert [e.id for e in first.entries] == seqs[:2]
        assert first.next_cursor == seqs[1]

        # New entries land between the two requests
        later = [_append(audit, 1) for _ in range(2)]

        second = audit.query_by_event(1, after=first.next_cursor, limit=2)
        assert [e.id for e in second.entries] == seqs[2:]

        third = audit.query_by_event(1, after=second.next_cursor, limit=2)
        assert [e.id for e in third.entries] == later
        assert third.next_cursor is None

    def test_iterator_walks_all_pages(self, db_session, monkeypatch):
        from rollcall.core.config import settings
        monkeypatch.setattr(settings, "AUDIT_PAGE_SIZE", 2)

        audit = AuditLog(db_session)
        seqs = [_append(audit, 1) for _ in range(5)]

        assert [e.id for e in audit.iter_by_event(1)] == seqs
        assert [e.id for e in audit.iter_by_member(1, PARTICIPANT_ID, after=seqs[2])] == seqs[3:]

    def test_limit_is_capped(self, db_session, monkeypatch):
        from rollcall.core.config import settings
        monkeypatch.setattr(settings, "AUDIT_MAX_PAGE_SIZE", 3)

        audit = AuditLog(db_session)
        for _ in range(5):
            _append(audit, 1)
        page = audit.query_by_event(1, limit=100)
        assert len(page.entries) == 3
        assert page.next_cursor is not None


@pytest.mark.unit
class TestRecordedDenials:
    """Test the denial recording context manager."""

    def test_policy_denial_is_recorded_and_reraised(self, db_session):
        audit = AuditLog(db_session)
        with pytest.raises(AuthorizationError):
            with recorded_denials(db_session, audit, event_id=1, user_id=PARTICIPANT_ID,
                                  actor_id=MODERATOR_ID, source=CheckinSource.MODERATOR,
                                  method=CheckinMethod.SELF_MANUAL):
                _append(audit, 1)  # rolled back with the failed operation
                raise AuthorizationError("nope")

        entries = audit.query_by_event(1).entries
        assert len(entries) == 1
        assert entries[0].action == AuditAction.DENIED_ATTEMPT.value
        assert entries[0].result == AuditResult.DENIED.value
        assert entries[0].reason == "NOT_AUTHORIZED"
        assert entries[0].actor_id == MODERATOR_ID

    def test_conflict_is_not_a_denial(self, db_session):
        audit = AuditLog(db_session)
        with pytest.raises(ConflictError):
            with recorded_denials(db_session, audit, event_id=1, user_id=PARTICIPANT_ID,
                                  actor_id=PARTICIPANT_ID, source=CheckinSource.USER):
                raise ConflictError("busy")

        assert audit.query_by_event(1).entries == []

    def test_connection_loss_is_unavailable(self, db_session):
        audit = AuditLog(db_session)
        with pytest.raises(PersistenceUnavailableError):
            with recorded_denials(db_session, audit, event_id=1, user_id=PARTICIPANT_ID,
                                  actor_id=PARTICIPANT_ID, source=CheckinSource.USER):
                raise OperationalError("SELECT 1", {}, Exception("connection lost"))

        assert audit.query_by_event(1).entries == []

    def test_failed_denial_write_is_unavailable(self, db_session, monkeypatch):
        audit = AuditLog(db_session)

        def lost_connection(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("connection lost"))

        monkeypatch.setattr(audit, "append_denial", lost_connection)
        with pytest.raises(PersistenceUnavailableError) as exc_info:
            with recorded_denials(db_session, audit, event_id=1, user_id=PARTICIPANT_ID,
                                  actor_id=MODERATOR_ID, source=CheckinSource.MODERATOR):
                raise AuthorizationError("nope")

        assert exc_info.value.http_status == 503
