"""Enumeration types for knowledge and verification data models."""

from enum import Enum


class Source(str, Enum):
    INTENT = "intent"
    DOCUMENT = "document"
    VECTOR = "vector"


class VerificationState(str, Enum):
    GREETING = "greeting"
    CONSENT_PENDING = "consent_pending"
    DECLINED = "declined"
    CALLBACK_SCHEDULED = "callback_scheduled"
    SMS_PENDING = "sms_pending"
    SMS_VERIFIED = "sms_verified"
    TOTP_PENDING = "totp_pending"
    TOTP_VERIFIED = "totp_verified"
    ENDED = "ended"


class Consent(str, Enum):
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    AMBIGUOUS = "ambiguous"


class FailureReason(str, Enum):
    EXPIRED = "expired"
    TOO_MANY_ATTEMPTS = "too many attempts"
    INVALID_CODE = "invalid code"
    NO_ACTIVE_CODE = "no active code"
    ALREADY_USED = "already used"
    MALFORMED_CODE = "malformed code"
    NO_CODE_DETECTED = "no code detected"
    NO_SESSION = "no session"
    AMBIGUOUS_RESPONSE = "ambiguous response"
    WRONG_STATE = "not allowed in current state"
    REISSUE_LIMIT = "too many codes sent"


class AgentActionType(str, Enum):
    LISTEN = "listen"
    GATHER_SMS_CODE = "gather_sms_code"
    GATHER_TOTP_CODE = "gather_totp_code"
    HANGUP = "hangup"
    TRANSFER = "transfer"
    SCHEDULE_CALLBACK = "schedule_callback"
