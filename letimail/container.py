"""
Service Container
=================

Builds every process-wide object (connection pool, HTTP sessions,
token signer) once, wires the services together and tears them
down on shutdown.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from letimail.auth import AuthGate
from letimail.config import AppSettings
from letimail.db import Database
from letimail.entities import utcnow
from letimail.exceptions import ErrorContext, MailProviderError
from letimail.logging_config import get_logger
from letimail.repositories import ApiKeyRepository, EmailRepository, OTPRepository, UserRepository
from letimail.services import (
    AccountService,
    ApiKeyService,
    AuthService,
    EmailService,
    LLMService,
    MailService,
    OTPService,
    QuotaLedger,
    TokenService,
)

logger = get_logger(__name__)


class ServiceContainer:
    """
    Dependency container for one application instance.

    Example:
        >>> container = ServiceContainer(get_settings())
        >>> container.database.create_all()
        >>> container.auth.login(...)
        >>> container.close()
    """

    def __init__(
        self,
        settings: AppSettings,
        clock: Optional[Callable[[], datetime]] = None,
        llm: Optional[LLMService] = None,
        mail: Optional[MailService] = None
    ) -> None:
        self.settings = settings
        self.clock = clock or utcnow

        self.database = Database(settings.database)

        self.users = UserRepository(self.database)
        self.otp_challenges = OTPRepository(self.database)
        self.emails = EmailRepository(self.database)
        self.api_keys = ApiKeyRepository(self.database)

        self.llm = llm or LLMService(settings.llm)
        self.mail = mail or MailService(settings.mail)

        self.tokens = TokenService.from_settings(settings.auth, clock=self.clock)
        self.quota = QuotaLedger(
            self.users,
            free_limit=settings.quota.free_email_limit,
            clock=self.clock
        )
        self.otp = OTPService(
            self.otp_challenges,
            self.users,
            settings.otp,
            deliver=self._deliver_otp,
            clock=self.clock
        )
        self.auth = AuthService(self.users, self.otp, self.tokens, self.quota, clock=self.clock)
        self.api_key_service = ApiKeyService(self.api_keys, self.users, clock=self.clock)
        self.account = AccountService(self.users, self.emails, self.api_keys, clock=self.clock)
        self.email_service = EmailService(self.llm, self.mail, self.quota, self.emails, clock=self.clock)
        self.gate = AuthGate(
            self.tokens,
            self.users,
            self.api_key_service,
            admin_emails=settings.auth.admin_emails,
            clock=self.clock
        )

    def _deliver_otp(self, email: str, code: str) -> None:
        """Send the code by mail, or log it outside production when no provider is set."""
        if self.mail.enabled:
            self.mail.send_otp(email, code)
        elif self.settings.is_production:
            raise MailProviderError(
                "Mail provider not configured, verification code cannot be delivered",
                recipient=email,
                context=ErrorContext(operation="deliver_otp")
            )
        else:
            logger.warning(
                "Mail provider not configured, verification code logged instead",
                recipient=email,
                verification_code=code
            )

    def close(self) -> None:
        """Release pooled connections and HTTP sessions."""
        self.llm.close()
        self.mail.close()
        self.database.close()
