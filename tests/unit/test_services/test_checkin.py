"""Unit tests for check-in service."""
import pytest
from sqlalchemy.exc import OperationalError

from rollcall.core.enums import AuditAction, AuditResult, CheckinMethod, CheckinSource, MemberStatus, Role
from rollcall.core.exceptions import (
    AuthorizationError,
    BlockedError,
    ConfigError,
    NotFoundError,
    PersistenceUnavailableError,
)
from rollcall.db.models import AuditEntry, Event

from tests.utils import (
    MODERATOR_ID,
    OTHER_PARTICIPANT_ID,
    OUTSIDER_ID,
    OWNER_ID,
    PARTICIPANT_ID,
    add_member,
    setup_event,
)

SELF = CheckinMethod.SELF_MANUAL
QR = CheckinMethod.EVENT_QR
PANEL = CheckinMethod.MODERATOR_PANEL


@pytest.mark.unit
class TestAttemptCheckin:
    """Test check-in attempts."""

    def test_self_manual_checkin(self, db_session, service):
        event = setup_event(db_session, methods=[SELF, QR])
        outcome = service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)

        assert outcome.state.checked_in_methods == {SELF}
        assert not outcome.already_checked_in
        assert outcome.state.is_checked_in

    def test_event_qr_checkin(self, event, service):
        outcome = service.attempt_checkin(event.id, PARTICIPANT_ID, QR, PARTICIPANT_ID, event.event_token)
        assert outcome.state.checked_in_methods == {QR}

    def test_replay_is_idempotent_and_audited_as_noop(self, event, service):
        service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)
        outcome = service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)

        assert outcome.already_checked_in
        assert outcome.state.checked_in_methods == {SELF}
        entries = service.audit.query_by_member(event.id, PARTICIPANT_ID).entries
        assert [(e.action, e.result) for e in entries] == [
            (AuditAction.CHECKIN.value, AuditResult.SUCCESS.value),
            (AuditAction.CHECKIN.value, AuditResult.NOOP.value),
        ]

    def test_checkin_disabled(self, db_session, service):
        event = setup_event(db_session, checkin_enabled=False)
        with pytest.raises(ConfigError):
            service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)

    def test_method_disabled(self, db_session, service):
        event = setup_event(db_session, methods=[QR])
        with pytest.raises(ConfigError):
            service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)

    def test_blocked_method_denied_while_disabled(self, db_session, service):
        event = setup_event(db_session)
        service.moderation.block(event.id, PARTICIPANT_ID, MODERATOR_ID, SELF)
        service.configure_checkin(event.id, OWNER_ID, enabled=False)

        with pytest.raises(BlockedError) as exc_info:
            service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)
        assert exc_info.value.code == "METHOD_BLOCKED"

    def test_denial_recorded_with_reason(self, db_session, service):
        event = setup_event(db_session, checkin_enabled=False)
        with pytest.raises(ConfigError):
            service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)

        entry = db_session.query(AuditEntry).one()
        assert entry.action == AuditAction.DENIED_ATTEMPT.value
        assert entry.reason == "CONFIG_DISABLED"
        assert entry.method == SELF.value
        assert entry.source == CheckinSource.USER.value

    def test_moderator_panel_checkin(self, event, service):
        outcome = service.attempt_checkin(event.id, PARTICIPANT_ID, PANEL, MODERATOR_ID)
        assert outcome.state.checked_in_methods == {PANEL}
        entry = service.audit.query_by_member(event.id, PARTICIPANT_ID).entries[0]
        assert entry.source == CheckinSource.MODERATOR.value
        assert entry.actor_id == MODERATOR_ID

    def test_participant_cannot_use_panel(self, event, service):
        with pytest.raises(AuthorizationError):
            service.attempt_checkin(event.id, OTHER_PARTICIPANT_ID, PANEL, PARTICIPANT_ID)

    def test_non_member_not_found(self, event, service):
        with pytest.raises(NotFoundError):
            service.attempt_checkin(event.id, OUTSIDER_ID, SELF, OUTSIDER_ID)

    def test_member_who_left_not_found(self, db_session, event, service):
        add_member(db_session, event, 50, Role.PARTICIPANT, MemberStatus.LEFT)
        with pytest.raises(NotFoundError):
            service.attempt_checkin(event.id, 50, SELF, 50)

    def test_unknown_event(self, service):
        with pytest.raises(NotFoundError):
            service.attempt_checkin(999, PARTICIPANT_ID, SELF, PARTICIPANT_ID)

    def test_owner_can_check_in(self, event, service):
        outcome = service.attempt_checkin(event.id, OWNER_ID, SELF, OWNER_ID)
        assert outcome.state.checked_in_methods == {SELF}


@pytest.mark.unit
class TestUncheck:
    """Test removing check-ins."""

    def test_self_uncheck_one_method(self, event, service):
        service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)
        service.attempt_checkin(event.id, PARTICIPANT_ID, QR, PARTICIPANT_ID, event.event_token)

        state = service.uncheck(event.id, PARTICIPANT_ID, PARTICIPANT_ID, SELF)
        assert state.checked_in_methods == {QR}

    def test_self_uncheck_all(self, event, service):
        service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)
        state = service.uncheck(event.id, PARTICIPANT_ID, PARTICIPANT_ID)
        assert state.checked_in_methods == frozenset()
        assert not state.is_checked_in

    def test_uncheck_inactive_is_noop(self, event, service):
        service.uncheck(event.id, PARTICIPANT_ID, PARTICIPANT_ID, SELF)
        entry = service.audit.query_by_member(event.id, PARTICIPANT_ID).entries[0]
        assert entry.result == AuditResult.NOOP.value

    def test_uncheck_other_member_goes_through_moderation(self, event, service):
        service.attempt_checkin(event.id, OTHER_PARTICIPANT_ID, SELF, OTHER_PARTICIPANT_ID)
        with pytest.raises(AuthorizationError):
            service.uncheck(event.id, OTHER_PARTICIPANT_ID, PARTICIPANT_ID)

        state = service.uncheck(event.id, OTHER_PARTICIPANT_ID, MODERATOR_ID)
        assert state.checked_in_methods == frozenset()


@pytest.mark.unit
class TestConfigureCheckin:
    """Test event check-in configuration."""

    def test_enable_event_qr_issues_token(self, db_session, service):
        event = setup_event(db_session, checkin_enabled=False, methods=[], with_token=False)
        updated = service.configure_checkin(event.id, OWNER_ID, enabled=True, methods=[QR, SELF])

        assert updated.checkin_enabled
        assert updated.enabled_methods == ["EVENT_QR", "SELF_MANUAL"]
        assert updated.event_token
        actions = {e.action for e in service.audit.query_by_event(event.id).entries}
        assert actions == {AuditAction.CONFIG_CHANGED.value, AuditAction.TOKEN_ROTATED.value}

    def test_existing_token_kept(self, event, service):
        token = event.event_token
        updated = service.configure_checkin(event.id, MODERATOR_ID, methods=[QR])
        assert updated.event_token == token

    def test_disabling_method_keeps_checkins(self, event, service):
        service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)
        service.configure_checkin(event.id, OWNER_ID, methods=[QR])
        assert service.store.get(event.id, PARTICIPANT_ID).checked_in_methods == {SELF}

    def test_participant_cannot_configure(self, db_session, event, service):
        with pytest.raises(AuthorizationError):
            service.configure_checkin(event.id, PARTICIPANT_ID, enabled=False)
        assert db_session.get(Event, event.id).checkin_enabled


@pytest.mark.unit
class TestArchiveMember:
    """Test archival when a membership ends."""

    def test_archive_clears_and_blocks_future_checkins(self, event, service):
        service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)
        state = service.archive_member(event.id, PARTICIPANT_ID)

        assert state.is_archived
        assert state.checked_in_methods == frozenset()
        with pytest.raises(NotFoundError):
            service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)

        entries = service.audit.query_by_member(event.id, PARTICIPANT_ID).entries
        system_entries = [e for e in entries if e.source == CheckinSource.SYSTEM.value]
        assert len(system_entries) == 1
        assert system_entries[0].action == AuditAction.UNCHECK.value

    def test_archive_member_without_state(self, event, service):
        assert service.archive_member(event.id, OTHER_PARTICIPANT_ID) is None


@pytest.mark.unit
class TestReads:
    """Test state and audit trail reads."""

    def test_member_reads_own_state(self, event, service):
        service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)
        state = service.get_member_state(event.id, PARTICIPANT_ID, PARTICIPANT_ID)
        assert state.checked_in_methods == {SELF}

    def test_participant_cannot_read_other_state(self, db_session, event, service):
        with pytest.raises(AuthorizationError):
            service.get_member_state(event.id, OTHER_PARTICIPANT_ID, PARTICIPANT_ID)

        denial = db_session.query(AuditEntry).filter(
            AuditEntry.action == AuditAction.DENIED_ATTEMPT.value
        ).one()
        assert denial.user_id == OTHER_PARTICIPANT_ID
        assert denial.actor_id == PARTICIPANT_ID
        assert denial.reason == "NOT_AUTHORIZED"

    def test_trail_read_failure_is_unavailable(self, event, service, monkeypatch):
        def lost_connection(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(service.audit, "query_by_event", lost_connection)
        with pytest.raises(PersistenceUnavailableError):
            service.get_audit_trail(event.id, MODERATOR_ID)

    def test_member_reads_own_trail(self, event, service):
        service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)
        page = service.get_audit_trail(event.id, PARTICIPANT_ID, user_id=PARTICIPANT_ID)
        assert len(page.entries) == 1

    def test_participant_cannot_read_event_trail(self, event, service):
        with pytest.raises(AuthorizationError):
            service.get_audit_trail(event.id, PARTICIPANT_ID)

    def test_staff_reads_event_trail(self, event, service):
        service.attempt_checkin(event.id, PARTICIPANT_ID, SELF, PARTICIPANT_ID)
        service.attempt_checkin(event.id, OTHER_PARTICIPANT_ID, SELF, OTHER_PARTICIPANT_ID)
        page = service.get_audit_trail(event.id, MODERATOR_ID)
        assert {e.user_id for e in page.entries} == {PARTICIPANT_ID, OTHER_PARTICIPANT_ID}
