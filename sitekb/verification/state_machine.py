"""Per-call verification state machine.

GREETING -> CONSENT_PENDING -> {DECLINED | SMS_PENDING} -> SMS_VERIFIED
-> TOTP_PENDING -> TOTP_VERIFIED, with DECLINED -> CALLBACK_SCHEDULED and
any state -> ENDED. Caller events come in as utterances; outcomes go back as
TransitionResult objects. Only a transition missing from
ALLOWED_TRANSITIONS raises, and that is a programming error.
"""

import logging
import time
from typing import Callable

from sitekb.models.enums import Consent, FailureReason, VerificationState
from sitekb.models.verification import CodeCheck, TransitionResult, VerificationSession
from sitekb.storage.session_store import SessionStore
from sitekb.verification import totp
from sitekb.verification.otp import OtpValidator
from sitekb.verification.speech import classify_consent, extract_callback_time, extract_spoken_digits

logger = logging.getLogger(__name__)

DEFAULT_TOTP_MAX_ATTEMPTS = 3
DEFAULT_MAX_CODE_REISSUES = 2
DEFAULT_SESSION_TTL_SECONDS = 1800
KEY_PREFIX = "session:"

S = VerificationState

ALLOWED_TRANSITIONS: dict[VerificationState, frozenset] = {
    S.GREETING: frozenset({S.CONSENT_PENDING, S.ENDED}),
    S.CONSENT_PENDING: frozenset({S.SMS_PENDING, S.DECLINED, S.ENDED}),
    S.DECLINED: frozenset({S.CALLBACK_SCHEDULED, S.ENDED}),
    S.CALLBACK_SCHEDULED: frozenset({S.ENDED}),
    S.SMS_PENDING: frozenset({S.SMS_VERIFIED, S.ENDED}),
    S.SMS_VERIFIED: frozenset({S.TOTP_PENDING, S.ENDED}),
    S.TOTP_PENDING: frozenset({S.TOTP_VERIFIED, S.ENDED}),
    S.TOTP_VERIFIED: frozenset({S.ENDED}),
    S.ENDED: frozenset(),
}

MESSAGES = {
    S.SMS_PENDING: "Great! For security, I've sent a 6-digit verification code to your phone. "
                   "Please enter it using your keypad when ready.",
    S.DECLINED: "No problem. When would be a better time to call you back?",
    S.CALLBACK_SCHEDULED: "Perfect, I'll call you back {when}. Have a great day!",
    S.SMS_VERIFIED: "Thank you, you're verified. How can I help you today?",
    S.TOTP_PENDING: "For account information, I need additional verification. "
                    "Please enter your Google Authenticator code.",
    S.TOTP_VERIFIED: "Thank you, you're fully verified. What would you like to know about your account?",
    S.ENDED: "Thank you for your time. Goodbye!",
}

FAILURE_MESSAGES = {
    FailureReason.EXPIRED: "That code has expired. I'll send you a new one.",
    FailureReason.TOO_MANY_ATTEMPTS: "I'm sorry, that code could not be verified after several attempts.",
    FailureReason.INVALID_CODE: "That code doesn't match. Please try again.",
    FailureReason.NO_ACTIVE_CODE: "I don't have an active code for you. Let me send a new one.",
    FailureReason.ALREADY_USED: "That code has already been used.",
    FailureReason.MALFORMED_CODE: "Codes are six digits long. Please try again.",
    FailureReason.NO_CODE_DETECTED: "Sorry, I didn't catch a six-digit code. Could you enter it again?",
    FailureReason.NO_SESSION: "Sorry, I can't find this call.",
    FailureReason.AMBIGUOUS_RESPONSE: "Sorry, is now a good time to talk? A simple yes or no is fine.",
    FailureReason.WRONG_STATE: "Sorry, I can't do that right now.",
    FailureReason.REISSUE_LIMIT: "I'm sorry, I wasn't able to verify you on this call. "
                                 "Please call us back later. Goodbye.",
}


class InvalidTransition(ValueError):
    """Raised when code asks for a transition missing from ALLOWED_TRANSITIONS."""

    def __init__(self, current: VerificationState, target: VerificationState):
        super().__init__(f"transition {current.value} -> {target.value} is not allowed")
        self.current = current
        self.target = target


class VerificationStateMachine:
    """Drives VerificationSession objects held in a SessionStore."""

    def __init__(
        self,
        sessions: SessionStore,
        otp: OtpValidator,
        totp_max_attempts: int = DEFAULT_TOTP_MAX_ATTEMPTS,
        max_code_reissues: int = DEFAULT_MAX_CODE_REISSUES,
        session_ttl_seconds: float | None = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._sessions = sessions
        self._otp = otp
        self.totp_max_attempts = totp_max_attempts
        self.max_code_reissues = max_code_reissues
        self._session_ttl = session_ttl_seconds
        self._clock = clock

    # --- session lifecycle ---

    def _key(self, call_id: str) -> str:
        return f"{KEY_PREFIX}{call_id}"

    def _save(self, session: VerificationSession) -> None:
        self._sessions.set(self._key(session.call_id), session, ttl_seconds=self._session_ttl)

    def start(
        self,
        call_id: str,
        phone: str | None = None,
        name: str | None = None,
        totp_secret: str | None = None,
    ) -> VerificationSession:
        """Create a session in GREETING, replacing any stale one for the call."""
        session = VerificationSession(
            call_id=call_id,
            phone=phone,
            name=name,
            totp_secret=totp_secret,
            created_at=self._clock(),
        )
        self._save(session)
        logger.info("Started verification session for call %s", call_id)
        return session

    def get(self, call_id: str) -> VerificationSession | None:
        return self._sessions.get(self._key(call_id))

    def record_turn(self, call_id: str, role: str, text: str) -> None:
        session = self.get(call_id)
        if session is None:
            return
        session.transcript.append({"role": role, "content": text, "at": self._clock()})
        self._save(session)

    def end(self, call_id: str) -> TransitionResult:
        """Move to ENDED and destroy the session and its OTP."""
        session = self.get(call_id)
        if session is None:
            return self._missing()
        previous = session.state
        self._transition(session, S.ENDED)
        self._sessions.delete(self._key(call_id))
        self._otp.discard(call_id)
        logger.info("Ended call %s from state %s", call_id, previous.value)
        return TransitionResult(
            accepted=True,
            state=S.ENDED,
            previous_state=previous,
            message=MESSAGES[S.ENDED],
        )

    # --- transitions ---

    def _transition(self, session: VerificationSession, target: VerificationState) -> None:
        if target not in ALLOWED_TRANSITIONS[session.state]:
            raise InvalidTransition(session.state, target)
        logger.debug("Call %s: %s -> %s", session.call_id, session.state.value, target.value)
        session.state = target
        self._save(session)

    def _missing(self) -> TransitionResult:
        return TransitionResult(
            accepted=False,
            state=None,
            reason=FailureReason.NO_SESSION,
            message=FAILURE_MESSAGES[FailureReason.NO_SESSION],
        )

    def _rejected(
        self,
        session: VerificationSession,
        reason: FailureReason,
        attempts_remaining: int | None = None,
    ) -> TransitionResult:
        return TransitionResult(
            accepted=False,
            state=session.state,
            previous_state=session.state,
            reason=reason,
            message=FAILURE_MESSAGES[reason],
            attempts_remaining=attempts_remaining,
        )

    def _moved(self, session: VerificationSession, target: VerificationState, **extra) -> TransitionResult:
        previous = session.state
        self._transition(session, target)
        return TransitionResult(
            accepted=True,
            state=target,
            previous_state=previous,
            message=extra.pop("message", MESSAGES[target]),
            **extra,
        )

    def greeted(self, call_id: str) -> TransitionResult:
        """The opening line has been spoken: wait for consent."""
        session = self.get(call_id)
        if session is None:
            return self._missing()
        if session.state != S.GREETING:
            return self._rejected(session, FailureReason.WRONG_STATE)
        return self._moved(session, S.CONSENT_PENDING, message="")

    def handle_consent(self, call_id: str, utterance: str) -> TransitionResult:
        """Classify the answer to "is this a good time?" and act on it.

        Yes issues an SMS code (returned as issued_code for delivery). No
        declines, and a time phrase in the same answer schedules the callback.
        Anything else leaves the state unchanged so the caller re-prompts.
        """
        session = self.get(call_id)
        if session is None:
            return self._missing()
        if session.state != S.CONSENT_PENDING:
            return self._rejected(session, FailureReason.WRONG_STATE)

        consent = classify_consent(utterance)
        if consent == Consent.AFFIRMATIVE:
            result = self._moved(session, S.SMS_PENDING)
            result.issued_code = self._issue(session)
            return result

        if consent == Consent.NEGATIVE:
            declined = self._moved(session, S.DECLINED)
            when = extract_callback_time(utterance)
            if when is None:
                return declined
            scheduled = self._schedule(session, when)
            scheduled.previous_state = S.CONSENT_PENDING
            return scheduled

        return self._rejected(session, FailureReason.AMBIGUOUS_RESPONSE)

    def _issue(self, session: VerificationSession):
        record = self._otp.issue(session.call_id)
        session.otp_code = record.code
        session.otp_expiry = record.expires_at
        session.otp_attempts = 0
        self._save(session)
        return record

    def reissue_code(self, call_id: str) -> TransitionResult:
        """Issue a replacement SMS code after expiry or exhaustion.

        At most max_code_reissues replacements per call; the first code sent
        on consent does not count.
        """
        session = self.get(call_id)
        if session is None:
            return self._missing()
        if session.state != S.SMS_PENDING:
            return self._rejected(session, FailureReason.WRONG_STATE)
        if session.code_reissues >= self.max_code_reissues:
            logger.warning("Code reissue limit reached for call %s", call_id)
            return self._rejected(session, FailureReason.REISSUE_LIMIT)
        session.code_reissues += 1
        return TransitionResult(
            accepted=True,
            state=session.state,
            previous_state=session.state,
            message="I've sent you a new verification code. Please enter it when ready.",
            issued_code=self._issue(session),
        )

    def _schedule(self, session: VerificationSession, when: str) -> TransitionResult:
        session.callback_time = when
        logger.info("Callback scheduled for call %s: %s", session.call_id, when)
        return self._moved(
            session,
            S.CALLBACK_SCHEDULED,
            message=MESSAGES[S.CALLBACK_SCHEDULED].format(when=when),
            callback_time=when,
        )

    def schedule_callback(self, call_id: str, when: str | None) -> TransitionResult:
        """Record the callback time given after a decline."""
        session = self.get(call_id)
        if session is None:
            return self._missing()
        if session.state != S.DECLINED:
            return self._rejected(session, FailureReason.WRONG_STATE)
        when = (when or "").strip()
        if not when:
            return self._rejected(session, FailureReason.AMBIGUOUS_RESPONSE)
        return self._schedule(session, when)

    def submit_code(self, call_id: str, utterance: str) -> TransitionResult:
        """Decode a keypad or spoken code and check it for the pending factor."""
        session = self.get(call_id)
        if session is None:
            return self._missing()
        if session.state == S.SMS_PENDING:
            return self._submit_sms(session, utterance)
        if session.state == S.TOTP_PENDING:
            return self._submit_totp(session, utterance)
        return self._rejected(session, FailureReason.WRONG_STATE)

    def _submit_sms(self, session: VerificationSession, utterance: str) -> TransitionResult:
        code = extract_spoken_digits(utterance)
        if code is None:
            return self._rejected(session, FailureReason.NO_CODE_DETECTED)

        check: CodeCheck = self._otp.verify(session.call_id, code)
        if check.verified:
            session.verified_at = self._clock()
            session.otp_code = None
            return self._moved(session, S.SMS_VERIFIED)

        if check.attempts_remaining is not None:
            session.otp_attempts = self._otp.max_attempts - check.attempts_remaining
            self._save(session)
        return self._rejected(session, check.reason, check.attempts_remaining)

    def _submit_totp(self, session: VerificationSession, utterance: str) -> TransitionResult:
        if session.totp_attempts >= self.totp_max_attempts:
            return self._rejected(session, FailureReason.TOO_MANY_ATTEMPTS, 0)

        code = extract_spoken_digits(utterance)
        if code is None:
            return self._rejected(session, FailureReason.NO_CODE_DETECTED)

        if totp.verify_code(session.totp_secret, code, at=self._clock()):
            return self._moved(session, S.TOTP_VERIFIED)

        session.totp_attempts += 1
        self._save(session)
        remaining = self.totp_max_attempts - session.totp_attempts
        if remaining <= 0:
            logger.warning("Authenticator verification failed %d times on call %s", session.totp_attempts, session.call_id)
            return self._rejected(session, FailureReason.TOO_MANY_ATTEMPTS, 0)
        return self._rejected(session, FailureReason.INVALID_CODE, remaining)

    def request_sensitive(self, call_id: str) -> TransitionResult:
        """Escalate to authenticator verification for account information."""
        session = self.get(call_id)
        if session is None:
            return self._missing()
        if session.state in (S.TOTP_PENDING, S.TOTP_VERIFIED):
            return TransitionResult(accepted=True, state=session.state, previous_state=session.state)
        if session.state != S.SMS_VERIFIED:
            return self._rejected(session, FailureReason.WRONG_STATE)
        return self._moved(session, S.TOTP_PENDING)
