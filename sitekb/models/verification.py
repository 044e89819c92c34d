"""Verification session, OTP record and result data models.

Timestamps are epoch seconds so that callers can inject a clock.
"""

import time
from dataclasses import dataclass, field

from sitekb.models.enums import FailureReason, VerificationState


@dataclass
class OtpRecord:
    """A single-use SMS code issued to one call or phone number."""

    key: str
    code: str
    issued_at: float
    expires_at: float
    attempts: int = 0
    consumed: bool = False

    def __post_init__(self):
        if len(self.code) != 6 or not self.code.isdigit():
            raise ValueError("code must be exactly 6 digits")
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be after issued_at")

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class CodeCheck:
    """Outcome of checking a submitted OTP or TOTP code."""

    verified: bool
    reason: FailureReason | None = None
    attempts_remaining: int | None = None

    def to_dict(self) -> dict:
        return {
            "verified": self.verified,
            "reason": self.reason.value if self.reason else None,
            "attempts_remaining": self.attempts_remaining,
        }


@dataclass
class VerificationSession:
    """Per-call conversational verification progress."""

    call_id: str
    phone: str | None = None
    name: str | None = None
    state: VerificationState = VerificationState.GREETING
    otp_code: str | None = None
    otp_expiry: float | None = None
    otp_attempts: int = 0
    code_reissues: int = 0
    totp_secret: str | None = None
    totp_attempts: int = 0
    verified_at: float | None = None
    callback_time: str | None = None
    transcript: list[dict] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if not self.call_id:
            raise ValueError("call_id must not be empty")
        if not isinstance(self.state, VerificationState):
            self.state = VerificationState(self.state)

    @property
    def sms_verified(self) -> bool:
        return self.state in (
            VerificationState.SMS_VERIFIED,
            VerificationState.TOTP_PENDING,
            VerificationState.TOTP_VERIFIED,
        )


@dataclass
class TransitionResult:
    """Result of feeding one event into the verification state machine."""

    accepted: bool
    state: VerificationState | None
    previous_state: VerificationState | None = None
    reason: FailureReason | None = None
    message: str = ""
    attempts_remaining: int | None = None
    callback_time: str | None = None
    issued_code: OtpRecord | None = None

    @property
    def changed(self) -> bool:
        return self.state is not None and self.state != self.previous_state
