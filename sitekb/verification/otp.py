"""Single-use SMS codes with expiry and an attempt limit.

Records live in a SessionStore under "otp:<key>" so they expire with the
store and never outlive the process that issued them.
"""

import logging
import secrets
import time
from typing import Callable

from sitekb.models.enums import FailureReason
from sitekb.models.verification import CodeCheck, OtpRecord
from sitekb.storage.session_store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_OTP_TTL_SECONDS = 300
DEFAULT_OTP_MAX_ATTEMPTS = 3
KEY_PREFIX = "otp:"
# Consumed records are kept briefly so a replay reports "already used".
CONSUMED_RETENTION_SECONDS = 600


def generate_code() -> str:
    """Uniformly random 6-digit code with no leading zero."""
    return str(secrets.randbelow(900000) + 100000)


def mask(code: str) -> str:
    return f"{code[:1]}*****" if code else ""


class OtpValidator:
    """Issues and checks SMS one-time codes keyed by call or phone."""

    def __init__(
        self,
        store: SessionStore,
        ttl_seconds: float = DEFAULT_OTP_TTL_SECONDS,
        max_attempts: int = DEFAULT_OTP_MAX_ATTEMPTS,
        clock: Callable[[], float] = time.time,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._store = store
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self._clock = clock

    def _key(self, key: str) -> str:
        return f"{KEY_PREFIX}{key}"

    def issue(self, key: str) -> OtpRecord:
        """Issue a fresh code for key, replacing any earlier one."""
        now = self._clock()
        record = OtpRecord(
            key=key,
            code=generate_code(),
            issued_at=now,
            expires_at=now + self.ttl_seconds,
        )
        self._store.set(self._key(key), record, ttl_seconds=self.ttl_seconds + CONSUMED_RETENTION_SECONDS)
        logger.info("Issued verification code %s for %s", mask(record.code), key)
        return record

    def active(self, key: str) -> OtpRecord | None:
        return self._store.get(self._key(key))

    def discard(self, key: str) -> bool:
        return self._store.delete(self._key(key))

    def verify(self, key: str, code: str | None) -> CodeCheck:
        """Check a submitted code. Never raises for caller input."""
        record: OtpRecord | None = self._store.get(self._key(key))
        if record is None:
            return CodeCheck(verified=False, reason=FailureReason.NO_ACTIVE_CODE)
        if record.consumed:
            return CodeCheck(verified=False, reason=FailureReason.ALREADY_USED)

        now = self._clock()
        if record.is_expired(now):
            self.discard(key)
            logger.info("Verification code for %s expired", key)
            return CodeCheck(verified=False, reason=FailureReason.EXPIRED)

        code = (code or "").strip()
        if len(code) != len(record.code) or not code.isdigit():
            return CodeCheck(
                verified=False,
                reason=FailureReason.MALFORMED_CODE,
                attempts_remaining=self.max_attempts - record.attempts,
            )

        if secrets.compare_digest(code, record.code):
            record.consumed = True
            self._store.set(self._key(key), record, ttl_seconds=CONSUMED_RETENTION_SECONDS)
            logger.info("Verification code for %s accepted", key)
            return CodeCheck(verified=True)

        record.attempts += 1
        remaining = self.max_attempts - record.attempts
        if remaining <= 0:
            self.discard(key)
            logger.warning("Verification code for %s invalidated after %d attempts", key, record.attempts)
            return CodeCheck(verified=False, reason=FailureReason.TOO_MANY_ATTEMPTS, attempts_remaining=0)

        self._store.set(self._key(key), record, ttl_seconds=record.expires_at - now + CONSUMED_RETENTION_SECONDS)
        logger.info("Wrong verification code for %s, %d attempts left", key, remaining)
        return CodeCheck(verified=False, reason=FailureReason.INVALID_CODE, attempts_remaining=remaining)
