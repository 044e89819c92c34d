"""Unit tests for the per-call verification state machine."""

import pytest

from sitekb.models.enums import FailureReason, VerificationState
from sitekb.storage.session_store import InMemorySessionStore
from sitekb.verification import totp
from sitekb.verification.otp import OtpValidator
from sitekb.verification.state_machine import (
    ALLOWED_TRANSITIONS,
    InvalidTransition,
    VerificationStateMachine,
)

S = VerificationState
SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
DIGIT_WORDS = {
    "0": "zero", "1": "one", "2": "two", "3": "three", "4": "four",
    "5": "five", "6": "six", "7": "seven", "8": "eight", "9": "nine",
}


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def spoken(code: str) -> str:
    return " ".join(DIGIT_WORDS[d] for d in code)


def wrong(code: str) -> str:
    return "000000" if code != "000000" else "111111"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def machine(clock):
    store = InMemorySessionStore(clock=clock)
    return VerificationStateMachine(store, OtpValidator(store, clock=clock), clock=clock)


@pytest.fixture
def consent_pending(machine):
    machine.start("call-1", phone="+15550001234", name="Dana", totp_secret=SECRET)
    machine.greeted("call-1")
    return machine


@pytest.fixture
def sms_pending(consent_pending):
    result = consent_pending.handle_consent("call-1", "sure, go ahead")
    return consent_pending, result.issued_code.code


@pytest.fixture
def sms_verified(sms_pending):
    machine, code = sms_pending
    machine.submit_code("call-1", code)
    return machine


class TestTransitionTable:
    def test_ended_is_terminal(self):
        assert ALLOWED_TRANSITIONS[S.ENDED] == frozenset()

    def test_every_live_state_can_end(self):
        assert all(S.ENDED in targets for state, targets in ALLOWED_TRANSITIONS.items() if state != S.ENDED)

    def test_disallowed_transition_raises(self, machine):
        session = machine.start("call-1")
        with pytest.raises(InvalidTransition):
            machine._transition(session, S.TOTP_VERIFIED)


class TestGreetingAndConsent:
    def test_start(self, machine):
        session = machine.start("call-1", name="Dana")
        assert session.state == S.GREETING
        assert machine.get("call-1") is session

    def test_greeted(self, machine):
        machine.start("call-1")
        result = machine.greeted("call-1")
        assert result.accepted and result.changed
        assert result.state == S.CONSENT_PENDING
        assert machine.greeted("call-1").reason == FailureReason.WRONG_STATE

    def test_affirmative_issues_code(self, consent_pending):
        result = consent_pending.handle_consent("call-1", "sure, go ahead")
        assert result.state == S.SMS_PENDING
        assert result.issued_code is not None
        assert consent_pending.get("call-1").otp_code == result.issued_code.code

    def test_decline_with_time_schedules_callback(self, consent_pending):
        result = consent_pending.handle_consent("call-1", "no thanks, call me tomorrow at 3pm")
        assert result.state == S.CALLBACK_SCHEDULED
        assert result.previous_state == S.CONSENT_PENDING
        assert result.callback_time == "tomorrow at 3pm"
        assert consent_pending.get("call-1").callback_time == "tomorrow at 3pm"

    def test_decline_then_schedule(self, consent_pending):
        assert consent_pending.handle_consent("call-1", "no, I'm busy").state == S.DECLINED
        result = consent_pending.schedule_callback("call-1", "Friday morning")
        assert result.state == S.CALLBACK_SCHEDULED
        assert "Friday morning" in result.message

    def test_schedule_requires_a_time(self, consent_pending):
        consent_pending.handle_consent("call-1", "nope")
        result = consent_pending.schedule_callback("call-1", "  ")
        assert not result.accepted
        assert result.state == S.DECLINED

    def test_ambiguous_leaves_state(self, consent_pending):
        result = consent_pending.handle_consent("call-1", "who is this")
        assert not result.accepted
        assert result.reason == FailureReason.AMBIGUOUS_RESPONSE
        assert consent_pending.get("call-1").state == S.CONSENT_PENDING

    def test_missing_session(self, machine):
        result = machine.handle_consent("nobody", "yes")
        assert result.reason == FailureReason.NO_SESSION
        assert result.state is None


class TestSmsCode:
    def test_spoken_code_verifies(self, sms_pending):
        machine, code = sms_pending
        result = machine.submit_code("call-1", spoken(code))
        assert result.state == S.SMS_VERIFIED
        assert machine.get("call-1").verified_at is not None

    def test_wrong_code_counts_attempts(self, sms_pending):
        machine, code = sms_pending
        result = machine.submit_code("call-1", wrong(code))
        assert result.reason == FailureReason.INVALID_CODE
        assert result.attempts_remaining == 2
        assert machine.get("call-1").otp_attempts == 1

    def test_no_digits(self, sms_pending):
        machine, _ = sms_pending
        result = machine.submit_code("call-1", "I haven't got it yet")
        assert result.reason == FailureReason.NO_CODE_DETECTED
        assert result.state == S.SMS_PENDING

    def test_expired(self, sms_pending, clock):
        machine, code = sms_pending
        clock.advance(301)
        assert machine.submit_code("call-1", code).reason == FailureReason.EXPIRED

    def test_reissue(self, sms_pending):
        machine, code = sms_pending
        for _ in range(3):
            machine.submit_code("call-1", wrong(code))
        result = machine.reissue_code("call-1")
        assert result.accepted
        assert machine.submit_code("call-1", result.issued_code.code).state == S.SMS_VERIFIED

    def test_reissues_are_capped(self, sms_pending):
        machine, _ = sms_pending
        assert machine.reissue_code("call-1").accepted
        assert machine.reissue_code("call-1").accepted
        result = machine.reissue_code("call-1")
        assert not result.accepted
        assert result.reason == FailureReason.REISSUE_LIMIT
        assert result.issued_code is None
        assert machine.get("call-1").code_reissues == 2

    def test_reissue_cap_is_configurable(self, clock):
        store = InMemorySessionStore(clock=clock)
        machine = VerificationStateMachine(store, OtpValidator(store, clock=clock), max_code_reissues=0, clock=clock)
        machine.start("call-1")
        machine.greeted("call-1")
        machine.handle_consent("call-1", "yes")
        assert machine.reissue_code("call-1").reason == FailureReason.REISSUE_LIMIT

    def test_code_outside_pending_state(self, consent_pending):
        assert consent_pending.submit_code("call-1", "123456").reason == FailureReason.WRONG_STATE


class TestTotp:
    def test_sensitive_request_escalates(self, sms_verified):
        result = sms_verified.request_sensitive("call-1")
        assert result.state == S.TOTP_PENDING

    def test_sensitive_request_before_sms(self, sms_pending):
        machine, _ = sms_pending
        assert machine.request_sensitive("call-1").reason == FailureReason.WRONG_STATE

    def test_valid_totp(self, sms_verified, clock):
        sms_verified.request_sensitive("call-1")
        code = totp.generate_code(SECRET, at=clock.now)
        result = sms_verified.submit_code("call-1", code)
        assert result.state == S.TOTP_VERIFIED
        assert sms_verified.request_sensitive("call-1").accepted

    def test_hard_failure_after_three_attempts(self, sms_verified, clock):
        sms_verified.request_sensitive("call-1")
        code = totp.generate_code(SECRET, at=clock.now)
        results = [sms_verified.submit_code("call-1", wrong(code)) for _ in range(3)]
        assert [r.attempts_remaining for r in results] == [2, 1, 0]
        assert results[-1].reason == FailureReason.TOO_MANY_ATTEMPTS

        after = sms_verified.submit_code("call-1", code)
        assert after.reason == FailureReason.TOO_MANY_ATTEMPTS
        assert sms_verified.get("call-1").state == S.TOTP_PENDING

    def test_missing_secret_never_verifies(self, machine):
        machine.start("call-2")
        machine.greeted("call-2")
        code = machine.handle_consent("call-2", "yes").issued_code.code
        machine.submit_code("call-2", code)
        machine.request_sensitive("call-2")
        assert machine.submit_code("call-2", "123456").reason == FailureReason.INVALID_CODE


class TestEnd:
    def test_end_destroys_session(self, sms_pending):
        machine, _ = sms_pending
        result = machine.end("call-1")
        assert result.state == S.ENDED
        assert result.previous_state == S.SMS_PENDING
        assert machine.get("call-1") is None
        assert machine.end("call-1").reason == FailureReason.NO_SESSION

    def test_session_expires(self, consent_pending, clock):
        clock.advance(1801)
        assert consent_pending.get("call-1") is None

    def test_transcript(self, consent_pending):
        consent_pending.record_turn("call-1", "user", "hello")
        assert consent_pending.get("call-1").transcript[-1]["content"] == "hello"
