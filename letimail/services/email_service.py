"""
Email Service
=============

Business logic for drafting, refining and sending emails.
Orchestrates the quota ledger, the LLM and mail clients and the
email history repository.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from letimail.entities import EmailRecord, User, utcnow
from letimail.exceptions import MailProviderError
from letimail.logging_config import get_logger, log_execution_time
from letimail.models import EmailKind, EmailStatus, GenerateRequest, ImproveEmailRequest, QuotaSnapshot, SendEmailRequest
from letimail.repositories.email_repository import EmailRepository
from letimail.services.llm_service import LLMService, parse_draft
from letimail.services.mail_service import MailService
from letimail.services.quota_ledger import QuotaLedger

logger = get_logger(__name__)


@dataclass
class GenerationResult:
    email: str
    usage: QuotaSnapshot
    record_id: str


@dataclass
class SendOutcome:
    record_id: str
    sent: bool
    message_id: Optional[str] = None


class EmailService:
    """
    Service for email operations.

    Example:
        >>> service = EmailService(llm, mail, ledger, email_repo)
        >>> result = service.generate(user, GenerateRequest(business="bakery", context="thank a customer"))
        >>> result.email.startswith("Subject:")
        True
    """

    def __init__(
        self,
        llm: LLMService,
        mail: MailService,
        quota: QuotaLedger,
        emails: EmailRepository,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self._llm = llm
        self._mail = mail
        self._quota = quota
        self._emails = emails
        self._clock = clock or utcnow

    @log_execution_time()
    def generate(self, user: User, request: GenerateRequest) -> GenerationResult:
        """
        Draft an email for a user.

        The quota is checked before the LLM call and consumed after it
        succeeded, so an upstream failure leaves the counters untouched.

        Raises:
            QuotaExceededError: If a free user has no generations left.
            LLMServiceError: If the completion failed.
        """
        self._quota.ensure_can_generate(user)

        email = self._llm.generate_email(
            business=request.business,
            context=request.context,
            tone=request.tone,
            email_length=request.email_length.value,
            style_prompt=request.style_prompt,
        )

        usage = self._quota.record_generation(user.id)

        subject, body = parse_draft(email)
        record = self._emails.add(
            user_id=user.id,
            kind=EmailKind.GENERATED,
            status=EmailStatus.DRAFT,
            subject=subject,
            body=body,
            business=request.business,
            context=request.context,
            tone=request.tone,
            created_at=self._clock(),
        )

        logger.info(
            "Email generated",
            record_id=record.id,
            emails_used=usage.emails_used,
            remaining=usage.remaining
        )
        return GenerationResult(email=email, usage=usage, record_id=record.id)

    @log_execution_time()
    def improve(self, user: User, request: ImproveEmailRequest) -> str:
        """
        Refine an email from the user's edits. Not metered.

        Raises:
            LLMServiceError: If the completion failed.
        """
        improved = self._llm.improve_email(request.original_email, request.edited_email)

        subject, body = parse_draft(improved)
        record = self._emails.add(
            user_id=user.id,
            kind=EmailKind.IMPROVED,
            status=EmailStatus.DRAFT,
            subject=subject,
            body=body,
            created_at=self._clock(),
        )
        logger.info("Email improved", record_id=record.id)
        return improved

    @log_execution_time()
    def send(self, user: User, request: SendEmailRequest) -> SendOutcome:
        """
        Record an email and dispatch it when a mail provider is configured.

        Without a provider the email is kept as a draft and ``sent`` is
        False. A provider failure is recorded as failed and re-raised.

        Raises:
            MailProviderError: If the provider rejected the message.
        """
        subject, body = request.subject, request.content
        if not subject:
            subject, body = parse_draft(request.content)

        if not self._mail.enabled:
            record = self._record_send(user, request, subject, body, EmailStatus.DRAFT)
            logger.info("Mail provider not configured, email kept as draft", record_id=record.id)
            return SendOutcome(record_id=record.id, sent=False)

        try:
            result = self._mail.send_email(
                to_email=request.to,
                subject=subject,
                body=body,
                from_name=request.business_name or None,
                reply_to=request.reply_to_email or user.email,
            )
        except MailProviderError:
            record = self._record_send(user, request, subject, body, EmailStatus.FAILED)
            logger.warning("Email dispatch failed", record_id=record.id)
            raise

        record = self._record_send(
            user, request, subject, body, EmailStatus.SENT,
            provider_message_id=result["message_id"]
        )
        logger.info("Email sent", record_id=record.id, message_id=result["message_id"])
        return SendOutcome(record_id=record.id, sent=True, message_id=result["message_id"])

    def _record_send(
        self,
        user: User,
        request: SendEmailRequest,
        subject: str,
        body: str,
        status: EmailStatus,
        provider_message_id: Optional[str] = None
    ) -> EmailRecord:
        return self._emails.add(
            user_id=user.id,
            kind=EmailKind.SENT,
            status=status,
            subject=subject,
            body=body,
            recipient=request.to,
            business=request.business_name or None,
            provider_message_id=provider_message_id,
            created_at=self._clock(),
        )
