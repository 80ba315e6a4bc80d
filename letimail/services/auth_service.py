"""
Auth Service
============

Registration, login and account removal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from letimail.entities import User, utcnow
from letimail.exceptions import ErrorContext, InvalidCredentialsError, UserNotFoundError, ValidationError
from letimail.logging_config import get_logger, set_user_id
from letimail.models import LoginRequest, RegisterRequest, UserProfile
from letimail.repositories.user_repository import UserRepository
from letimail.security import hash_password, verify_password
from letimail.services.otp_service import OTPService
from letimail.services.quota_ledger import QuotaLedger
from letimail.services.token_service import TokenService

logger = get_logger(__name__)

# Compared against when the email is unknown so both paths cost one bcrypt check
_DUMMY_HASH = hash_password("letimail-timing-equalizer")


@dataclass
class Session:
    token: str
    user: UserProfile


class AuthService:
    """
    Account lifecycle.

    Example:
        >>> auth = AuthService(users, otp, tokens, ledger)
        >>> session = auth.login(LoginRequest(email="alice@example.com", password="secret1"))
        >>> session.user.plan
        <Plan.FREE: 'free'>
    """

    def __init__(
        self,
        users: UserRepository,
        otp: OTPService,
        tokens: TokenService,
        quota: QuotaLedger,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self._users = users
        self._otp = otp
        self._tokens = tokens
        self._quota = quota
        self._clock = clock or utcnow

    def profile(self, user: User) -> UserProfile:
        return UserProfile.build(user, self._quota.snapshot(user))

    def register(self, request: RegisterRequest) -> Session:
        """
        Create an account for an email that proved ownership with a code.

        Raises:
            ValidationError: If the email is already registered or the code
                is missing, wrong, expired or exhausted.
        """
        email = str(request.email)
        if self._users.exists_by_email(email):
            raise ValidationError(
                message="Email already registered",
                field="email",
                context=ErrorContext(operation="register")
            )

        self._otp.verify(email, request.otp)

        user = self._users.create(
            email=email,
            name=request.name,
            password_hash=hash_password(request.password),
            today=self._clock().date(),
        )
        self._otp.consume(email)
        set_user_id(user.id)
        logger.info("User registered")
        return Session(token=self._tokens.issue(user.id), user=self.profile(user))

    def login(self, request: LoginRequest) -> Session:
        """
        Exchange email and password for a session token.

        Raises:
            InvalidCredentialsError: If the email is unknown or the password is wrong.
        """
        user = self._users.get_by_email(str(request.email))
        password_hash = user.password_hash if user is not None else _DUMMY_HASH
        if not verify_password(request.password, password_hash) or user is None:
            logger.info("Login refused")
            raise InvalidCredentialsError(context=ErrorContext(operation="login"))

        now = self._clock()
        self._users.touch_last_login(user.id, now)
        user.last_login_at = now
        set_user_id(user.id)
        logger.info("User logged in")
        return Session(token=self._tokens.issue(user.id), user=self.profile(user))

    def delete_account(self, user_id: str) -> None:
        """
        Delete a user with its email history and API keys.

        Raises:
            UserNotFoundError: If the user no longer exists.
        """
        if not self._users.delete(user_id):
            raise UserNotFoundError(user_id)
        logger.info("Account deleted")
