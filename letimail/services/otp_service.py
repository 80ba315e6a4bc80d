"""
OTP Service
===========

Email ownership verification before account creation.

A challenge moves through explicit states:

    NO_CHALLENGE -> PENDING -> VERIFIED | EXPIRED | EXHAUSTED

Issuing a new code always returns the email to PENDING with zero attempts.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from letimail.config import OTPSettings
from letimail.entities import OTPChallenge, utcnow
from letimail.exceptions import (
    ErrorContext,
    InvalidOTPError,
    OTPAttemptsExceededError,
    OTPExpiredError,
    OTPNotFoundError,
    ValidationError,
)
from letimail.logging_config import get_logger
from letimail.repositories.otp_repository import OTPRepository
from letimail.repositories.user_repository import UserRepository
from letimail.security import generate_numeric_code, hash_secret, secrets_match

logger = get_logger(__name__)

OTPDelivery = Callable[[str, str], None]


class OTPState(str, Enum):
    """Lifecycle state of a verification challenge."""
    NO_CHALLENGE = "no_challenge"
    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


def challenge_state(challenge: Optional[OTPChallenge], now: datetime) -> OTPState:
    """Resolve the state of a stored challenge at a point in time."""
    if challenge is None:
        return OTPState.NO_CHALLENGE
    if challenge.status == OTPState.EXHAUSTED.value:
        return OTPState.EXHAUSTED
    if now >= challenge.expires_at:
        return OTPState.EXPIRED
    if challenge.status == OTPState.VERIFIED.value:
        return OTPState.VERIFIED
    return OTPState.PENDING


class OTPService:
    """
    Issues, checks and consumes verification codes.

    Example:
        >>> otp = OTPService(otp_repo, user_repo, OTPSettings(), deliver=mail.send_otp)
        >>> otp.issue("alice@example.com")
        >>> otp.verify("alice@example.com", "123456")
    """

    def __init__(
        self,
        challenges: OTPRepository,
        users: UserRepository,
        settings: OTPSettings,
        deliver: OTPDelivery,
        clock: Optional[Callable[[], datetime]] = None,
        code_generator: Optional[Callable[[int], str]] = None
    ) -> None:
        self._challenges = challenges
        self._users = users
        self._settings = settings
        self._deliver = deliver
        self._clock = clock or utcnow
        self._generate_code = code_generator or generate_numeric_code

    def state(self, email: str) -> OTPState:
        return challenge_state(self._challenges.get(email), self._clock())

    def issue(self, email: str) -> datetime:
        """
        Create or overwrite the challenge for an unregistered email and deliver the code.

        Returns:
            Expiry of the new challenge.

        Raises:
            ValidationError: If the email already has an account.
        """
        if self._users.exists_by_email(email):
            raise ValidationError(
                message="Email already registered",
                field="email",
                context=ErrorContext(operation="issue_otp")
            )

        code = self._generate_code(self._settings.length)
        expires_at = self._clock() + timedelta(minutes=self._settings.ttl_minutes)
        self._challenges.upsert(email, hash_secret(code), expires_at)
        self._deliver(email, code)

        logger.info("Verification code issued", expires_at=expires_at.isoformat())
        return expires_at

    def _check(self, email: str, code: str) -> OTPChallenge:
        """Shared checks; a PENDING or VERIFIED challenge with a matching code passes."""
        now = self._clock()
        challenge = self._challenges.get(email)
        state = challenge_state(challenge, now)

        if state == OTPState.NO_CHALLENGE:
            raise OTPNotFoundError()
        if state == OTPState.EXPIRED:
            raise OTPExpiredError()
        if state == OTPState.EXHAUSTED:
            raise OTPAttemptsExceededError()
        if not secrets_match(code, challenge.code_hash):
            updated = self._challenges.record_failure(email, self._settings.max_attempts)
            attempts = updated.attempts if updated else None
            logger.info("Verification code mismatch", attempts=attempts)
            if updated is not None and challenge_state(updated, now) == OTPState.EXHAUSTED:
                raise OTPAttemptsExceededError()
            raise InvalidOTPError()

        return challenge

    def verify(self, email: str, code: str) -> OTPState:
        """
        Check a code while the challenge is live and mark it verified.

        Raises:
            OTPNotFoundError, OTPExpiredError, OTPAttemptsExceededError, InvalidOTPError
        """
        self._check(email, code)
        self._challenges.mark_verified(email)
        return OTPState.VERIFIED

    def consume(self, email: str) -> None:
        """
        Delete the challenge once the account it guarded exists.

        Registration calls this only after a successful insert, so a lost
        race for the same email leaves the verified code usable.
        """
        self._challenges.delete(email)
