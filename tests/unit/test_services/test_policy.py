"""Unit tests for the check-in policy engine."""
import pytest

from rollcall.core.enums import CheckinMethod, DenialReason, MethodStatus, ModerationAction, Role
from rollcall.core.exceptions import AuthorizationError, BlockedError, ConfigError, TokenError
from rollcall.services import policy
from rollcall.services.domain import CheckinSnapshot, EventConfig


def _event(enabled=True, methods=tuple(CheckinMethod)):
    return EventConfig(event_id=1, checkin_enabled=enabled, enabled_methods=frozenset(methods))


def _member(**kwargs):
    return CheckinSnapshot(event_id=1, user_id=3, **kwargs)


@pytest.mark.unit
class TestCanAttempt:
    """Test check-in attempt decisions."""

    def test_self_manual_allowed(self):
        decision = policy.can_attempt(_event(), _member(), CheckinMethod.SELF_MANUAL, Role.PARTICIPANT)
        assert decision.allowed
        assert decision.reason is None

    def test_checkin_disabled(self):
        decision = policy.can_attempt(_event(enabled=False), _member(), CheckinMethod.SELF_MANUAL, Role.PARTICIPANT)
        assert decision.denied
        assert decision.reason == DenialReason.CONFIG_DISABLED

    def test_method_not_enabled(self):
        event = _event(methods=[CheckinMethod.EVENT_QR])
        decision = policy.can_attempt(event, _member(), CheckinMethod.SELF_MANUAL, Role.PARTICIPANT)
        assert decision.reason == DenialReason.CONFIG_DISABLED

    @pytest.mark.parametrize("enabled", [True, False])
    def test_blocked_method_denied_regardless_of_config(self, enabled):
        """A blocked method reports METHOD_BLOCKED whether or not check-in is on."""
        member = _member(blocked_methods=frozenset({CheckinMethod.SELF_MANUAL}))
        decision = policy.can_attempt(_event(enabled=enabled), member, CheckinMethod.SELF_MANUAL, Role.PARTICIPANT)
        assert decision.reason == DenialReason.METHOD_BLOCKED

    def test_blocked_all_wins_over_everything(self):
        member = _member(blocked_all=True)
        for method in CheckinMethod:
            decision = policy.can_attempt(_event(), member, method, Role.OWNER, self_service=False)
            assert decision.reason == DenialReason.BLOCKED_ALL

    def test_blocked_all_checked_before_method_block(self):
        member = _member(blocked_all=True, blocked_methods=frozenset({CheckinMethod.EVENT_QR}))
        decision = policy.can_attempt(_event(), member, CheckinMethod.EVENT_QR, Role.PARTICIPANT)
        assert decision.reason == DenialReason.BLOCKED_ALL

    def test_other_methods_unaffected_by_method_block(self):
        member = _member(blocked_methods=frozenset({CheckinMethod.SELF_MANUAL}))
        decision = policy.can_attempt(_event(), member, CheckinMethod.EVENT_QR, Role.PARTICIPANT)
        assert decision.allowed

    @pytest.mark.parametrize("method", [CheckinMethod.MODERATOR_PANEL, CheckinMethod.USER_QR])
    def test_staff_methods_require_staff(self, method):
        decision = policy.can_attempt(_event(), _member(), method, Role.PARTICIPANT, self_service=False)
        assert decision.reason == DenialReason.NOT_AUTHORIZED

    @pytest.mark.parametrize("role", [Role.MODERATOR, Role.OWNER])
    def test_staff_may_record_panel_checkin(self, role):
        decision = policy.can_attempt(_event(), _member(), CheckinMethod.MODERATOR_PANEL, role, self_service=False)
        assert decision.allowed

    def test_self_manual_cannot_be_performed_for_someone_else(self):
        decision = policy.can_attempt(_event(), _member(), CheckinMethod.SELF_MANUAL, Role.OWNER, self_service=False)
        assert decision.reason == DenialReason.NOT_AUTHORIZED

    def test_decision_is_deterministic(self):
        args = (_event(), _member(), CheckinMethod.EVENT_QR, Role.PARTICIPANT)
        assert policy.can_attempt(*args) == policy.can_attempt(*args)


@pytest.mark.unit
class TestCanModerate:
    """Test the role hierarchy for moderation."""

    @pytest.mark.parametrize("action", [ModerationAction.BLOCK, ModerationAction.UNBLOCK,
                                        ModerationAction.REJECT, ModerationAction.FORCE_UNCHECK])
    def test_participant_cannot_moderate_participant(self, action):
        assert not policy.can_moderate(Role.PARTICIPANT, Role.PARTICIPANT, action)

    def test_moderator_outranks_participant(self):
        assert policy.can_moderate(Role.MODERATOR, Role.PARTICIPANT, ModerationAction.BLOCK)

    def test_moderator_cannot_moderate_moderator(self):
        assert not policy.can_moderate(Role.MODERATOR, Role.MODERATOR, ModerationAction.BLOCK)

    def test_moderator_cannot_moderate_owner(self):
        assert not policy.can_moderate(Role.MODERATOR, Role.OWNER, ModerationAction.REJECT)

    def test_owner_moderates_moderator(self):
        assert policy.can_moderate(Role.OWNER, Role.MODERATOR, ModerationAction.UNBLOCK)

    def test_non_member_cannot_moderate(self):
        assert not policy.can_moderate(Role.NONE, Role.PARTICIPANT, ModerationAction.BLOCK)

    def test_member_may_uncheck_self(self):
        assert policy.can_moderate(Role.PARTICIPANT, Role.PARTICIPANT, ModerationAction.UNCHECK, is_self=True)

    def test_member_cannot_unblock_self(self):
        assert not policy.can_moderate(Role.PARTICIPANT, Role.PARTICIPANT, ModerationAction.UNBLOCK, is_self=True)

    def test_staff_cannot_block_self(self):
        assert not policy.can_moderate(Role.OWNER, Role.OWNER, ModerationAction.BLOCK, is_self=True)


@pytest.mark.unit
class TestEffectiveStatus:
    """Test per-method display status."""

    def test_inactive_active_blocked(self):
        member = _member(
            checked_in_methods=frozenset({CheckinMethod.EVENT_QR}),
            blocked_methods=frozenset({CheckinMethod.SELF_MANUAL}),
        )
        assert policy.effective_status(member, CheckinMethod.EVENT_QR) == MethodStatus.ACTIVE
        assert policy.effective_status(member, CheckinMethod.SELF_MANUAL) == MethodStatus.BLOCKED
        assert policy.effective_status(member, CheckinMethod.USER_QR) == MethodStatus.INACTIVE

    def test_blocked_all_masks_every_method(self):
        member = _member(blocked_all=True, blocked_methods=frozenset({CheckinMethod.SELF_MANUAL}))
        assert all(policy.effective_status(member, m) == MethodStatus.BLOCKED for m in CheckinMethod)
        # The individual record is untouched
        assert member.blocked_methods == {CheckinMethod.SELF_MANUAL}


@pytest.mark.unit
class TestErrorFor:
    """Test translation of denials into exceptions."""

    @pytest.mark.parametrize("reason,error_class", [
        (DenialReason.CONFIG_DISABLED, ConfigError),
        (DenialReason.BLOCKED_ALL, BlockedError),
        (DenialReason.METHOD_BLOCKED, BlockedError),
        (DenialReason.NOT_AUTHORIZED, AuthorizationError),
        (DenialReason.INVALID_TOKEN, TokenError),
    ])
    def test_error_class_and_code(self, reason, error_class):
        error = policy.error_for(policy.deny(reason, "nope"))
        assert isinstance(error, error_class)
        assert error.code == reason.value
        assert error.message == "nope"

    def test_allow_has_no_error(self):
        with pytest.raises(ValueError):
            policy.error_for(policy.ALLOW)
