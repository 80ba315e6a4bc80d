"""
Mail Service
============

Outbound email through the SendGrid v3 ``mail/send`` API.

Bodies are written in Markdown by the editor and rendered to HTML
before dispatch; the plain text part is sent alongside.
"""

from __future__ import annotations

from typing import Optional, TypedDict

import markdown
import requests

from letimail.config import MailSettings
from letimail.exceptions import ErrorContext, MailProviderError
from letimail.logging_config import get_logger, log_execution_time

logger = get_logger(__name__)


class SendResult(TypedDict):
    """Result of an email send operation."""
    message_id: Optional[str]
    recipient: str


class MailService:
    """
    Transactional email client.

    Example:
        >>> mail = MailService(MailSettings(sendgrid_api_key="SG...", from_email="hi@letimail.com"))
        >>> mail.send_email(to_email="bob@example.com", subject="Hello", body="**World**")
    """

    # Markdown extensions for email formatting
    MARKDOWN_EXTENSIONS = [
        "nl2br",
        "tables",
        "fenced_code",
        "sane_lists",
    ]

    def __init__(
        self,
        settings: MailSettings,
        session: Optional[requests.Session] = None
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    def markdown_to_html(self, text: str) -> str:
        return markdown.markdown(text, extensions=self.MARKDOWN_EXTENSIONS)

    @log_execution_time()
    def send_email(
        self,
        to_email: str,
        subject: str,
        body: str,
        from_name: Optional[str] = None,
        reply_to: Optional[str] = None
    ) -> SendResult:
        """
        Send one email.

        Args:
            to_email: Recipient address.
            subject: Subject line.
            body: Markdown body.
            from_name: Display name of the sender, defaults to FROM_NAME.
            reply_to: Optional reply-to address.

        Returns:
            SendResult with the provider message id when one was returned.

        Raises:
            MailProviderError: If dispatch is not configured or the provider rejects it.
        """
        context = ErrorContext(operation="send_email")
        if not self.enabled:
            raise MailProviderError("Mail provider is not configured", recipient=to_email, context=context)

        payload = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {
                "email": self._settings.from_email,
                "name": from_name or self._settings.from_name,
            },
            "subject": subject or "(no subject)",
            "content": [
                {"type": "text/plain", "value": body},
                {"type": "text/html", "value": self.markdown_to_html(body)},
            ],
        }
        if reply_to:
            payload["reply_to"] = {"email": reply_to}

        try:
            response = self._session.post(
                self._settings.api_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self._settings.sendgrid_api_key}",
                    "Content-Type": "application/json",
                },
                timeout=(5, self._settings.timeout_seconds)
            )
        except requests.exceptions.RequestException as e:
            raise MailProviderError(
                f"Mail provider request failed: {e}",
                recipient=to_email,
                context=context,
                cause=e
            ) from e

        if response.status_code >= 400:
            logger.warning(
                "Mail provider rejected message",
                status_code=response.status_code,
                response=response.text[:200]
            )
            raise MailProviderError(
                f"Mail provider returned status {response.status_code}",
                recipient=to_email,
                context=context
            )

        message_id = response.headers.get("X-Message-Id")
        logger.info("Email dispatched", message_id=message_id)
        return SendResult(message_id=message_id, recipient=to_email)

    def send_otp(self, email: str, code: str) -> None:
        """Deliver a verification code."""
        body = (
            f"Your LetiMail verification code is **{code}**.\n\n"
            "It expires in a few minutes. If you did not request it, ignore this email."
        )
        self.send_email(to_email=email, subject="Your LetiMail verification code", body=body)

    def close(self) -> None:
        self._session.close()
