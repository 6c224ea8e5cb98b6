"""Unit tests for the credential lifecycle state machine."""

from datetime import datetime, timedelta, timezone

import pytest

from frontend.lifecycle import (
    EXPIRED_MESSAGE,
    INVALID_MESSAGE,
    MISSING_MESSAGE,
    CredentialLifecycle,
    CredentialStatus,
    are_cookies_stale,
)

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lifecycle(clock):
    return CredentialLifecycle(threshold=timedelta(hours=12), clock=clock)


class TestStaleness:

    def test_missing_reference_is_stale(self):
        assert are_cookies_stale(None)

    def test_within_threshold(self):
        assert not are_cookies_stale(T0, timedelta(hours=12), T0 + timedelta(hours=11))

    def test_past_threshold(self):
        assert are_cookies_stale(T0, timedelta(hours=12), T0 + timedelta(hours=13))

    def test_valid_thirteen_hours_old_expires(self, lifecycle, clock):
        lifecycle.restore("a=1", T0 - timedelta(hours=20), T0 - timedelta(hours=13), CredentialStatus.VALID)
        assert lifecycle.check_staleness()
        assert lifecycle.status == CredentialStatus.EXPIRED

    def test_never_validated_uses_set_time(self, lifecycle, clock):
        lifecycle.set_credential("a=1", validated=False)
        clock.advance(hours=13)
        assert lifecycle.should_refresh()
        # unknown is not demoted
        assert not lifecycle.check_staleness()
        assert lifecycle.status == CredentialStatus.UNKNOWN

    def test_fresh_valid_stays(self, lifecycle, clock):
        lifecycle.set_credential("a=1", validated=True)
        clock.advance(hours=11)
        assert not lifecycle.check_staleness()
        assert lifecycle.status == CredentialStatus.VALID


class TestTransitions:

    def test_paste_unvalidated(self, lifecycle):
        lifecycle.set_credential("a=1")
        assert lifecycle.status == CredentialStatus.UNKNOWN
        assert lifecycle.validated_at is None
        assert lifecycle.set_at == T0

    def test_paste_validated(self, lifecycle):
        lifecycle.set_credential("a=1", validated=True)
        assert lifecycle.status == CredentialStatus.VALID
        assert lifecycle.validated_at == T0

    def test_success_refreshes_timestamp(self, lifecycle, clock):
        lifecycle.set_credential("a=1", validated=True)
        clock.advance(hours=2)
        assert lifecycle.mark_validated()
        assert lifecycle.validated_at == T0 + timedelta(hours=2)

    def test_success_revives_expired(self, lifecycle):
        lifecycle.restore("a=1", T0, T0, CredentialStatus.EXPIRED)
        assert lifecycle.mark_validated()
        assert lifecycle.status == CredentialStatus.VALID

    @pytest.mark.parametrize("start", [
        CredentialStatus.UNKNOWN,
        CredentialStatus.VALID,
        CredentialStatus.EXPIRED,
        CredentialStatus.INVALID,
    ])
    def test_rejection_always_invalid(self, lifecycle, start):
        lifecycle.restore("a=1", T0, T0, start)
        lifecycle.mark_invalid()
        assert lifecycle.status == CredentialStatus.INVALID

    def test_invalid_ignores_success(self, lifecycle):
        lifecycle.set_credential("a=1", validated=True)
        lifecycle.mark_invalid()
        assert not lifecycle.mark_validated()
        assert lifecycle.status == CredentialStatus.INVALID

    def test_only_fresh_paste_leaves_invalid(self, lifecycle):
        lifecycle.set_credential("a=1")
        lifecycle.mark_invalid()
        lifecycle.set_credential("b=2", validated=True)
        assert lifecycle.status == CredentialStatus.VALID
        assert lifecycle.cookies == "b=2"

    def test_unvalidated_paste_resets_validation_time(self, lifecycle, clock):
        lifecycle.set_credential("a=1", validated=True)
        clock.advance(hours=1)
        lifecycle.set_credential("b=2")
        assert lifecycle.validated_at is None
        assert lifecycle.reference_time == T0 + timedelta(hours=1)

    def test_no_cookies_ignores_success(self, lifecycle):
        assert not lifecycle.mark_validated()
        assert lifecycle.status is None

    def test_clear(self, lifecycle):
        lifecycle.set_credential("a=1", validated=True)
        lifecycle.clear()
        assert lifecycle.cookies is None
        assert lifecycle.status is None
        assert not lifecycle.is_authenticated


class TestGate:

    def test_missing(self, lifecycle):
        verdict = lifecycle.gate()
        assert not verdict.allowed
        assert verdict.reason == "missing"
        assert verdict.message == MISSING_MESSAGE

    def test_unknown_allowed(self, lifecycle):
        lifecycle.set_credential("a=1")
        assert lifecycle.gate().allowed

    def test_invalid_blocked(self, lifecycle):
        lifecycle.set_credential("a=1")
        lifecycle.mark_invalid()
        verdict = lifecycle.gate()
        assert verdict.reason == "invalid"
        assert verdict.message == INVALID_MESSAGE

    def test_stale_valid_blocked(self, lifecycle, clock):
        lifecycle.set_credential("a=1", validated=True)
        clock.advance(hours=13)
        verdict = lifecycle.gate()
        assert not verdict.allowed
        assert verdict.reason == "expired"
        assert verdict.message == EXPIRED_MESSAGE
        assert lifecycle.status == CredentialStatus.EXPIRED
