"""
LLM Service
===========

Client for an OpenAI-compatible chat completions API (Groq by default)
used to draft new emails and refine them from the user's edits.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import requests

from letimail.config import LLMSettings
from letimail.exceptions import ErrorContext, LLMServiceError
from letimail.logging_config import get_logger, log_execution_time

logger = get_logger(__name__)


LENGTH_GUIDANCE = {
    "short": "Keep the email brief, around 3-5 sentences.",
    "medium": "Keep the email concise, around 6-12 sentences.",
    "long": "Write a detailed email of several paragraphs.",
}

SYSTEM_PROMPT = (
    "You are a professional email writer. Write as if the sender is "
    "professional and authentic. Return JSON only, with the keys "
    "\"subject\" and \"body\"."
)


def format_email(subject: str, body: str) -> str:
    """Render a draft the way clients display it."""
    return f"Subject: {subject.strip()}\n\n{body.strip()}"


def parse_draft(text: str) -> tuple[str, str]:
    """
    Extract subject and body from a completion.

    Models asked for JSON sometimes wrap it in prose or code fences, or
    answer with a plain "Subject:" header. All three are accepted.
    """
    text = text.strip()
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            data = json.loads(text[start:end + 1])
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("body"):
            return str(data.get("subject") or "").strip(), str(data["body"]).strip()

    if text.lower().startswith("subject:"):
        header, _, body = text.partition("\n")
        return header[len("subject:"):].strip(), body.strip()

    return "", text


class LLMService:
    """
    Chat completions client.

    Example:
        >>> llm = LLMService(LLMSettings(api_key="gsk_..."))
        >>> llm.generate_email("A bakery in Lyon", "thank a customer")
        'Subject: Thank you!\\n\\nDear ...'
    """

    def __init__(
        self,
        settings: LLMSettings,
        session: Optional[requests.Session] = None
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self._settings.api_key)

    def _complete(self, messages: list[dict[str, str]], operation: str) -> str:
        """
        Run one completion and return the assistant text.

        Raises:
            LLMServiceError: On missing configuration, transport errors,
                non-2xx responses or an empty completion.
        """
        context = ErrorContext(operation=operation, additional_info={"model": self._settings.model})
        if not self.configured:
            raise LLMServiceError("LLM API key is not configured", context=context)

        url = f"{self._settings.base_url.rstrip('/')}/chat/completions"
        payload = {
            "model": self._settings.model,
            "messages": messages,
            "max_tokens": self._settings.max_tokens,
            "temperature": self._settings.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self._settings.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self._session.post(
                url,
                json=payload,
                headers=headers,
                timeout=(5, self._settings.timeout_seconds)
            )
        except requests.exceptions.Timeout as e:
            raise LLMServiceError("LLM request timed out", context=context, cause=e) from e
        except requests.exceptions.RequestException as e:
            raise LLMServiceError(f"LLM request failed: {e}", context=context, cause=e) from e

        if response.status_code >= 400:
            logger.warning(
                "LLM API returned an error",
                status_code=response.status_code,
                response=response.text[:200]
            )
            raise LLMServiceError(
                f"LLM API returned status {response.status_code}",
                context=context
            )

        try:
            data: dict[str, Any] = response.json()
            text = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMServiceError("Unexpected LLM response format", context=context, cause=e) from e

        if not text.strip():
            raise LLMServiceError("LLM returned an empty completion", context=context)
        return text

    @log_execution_time()
    def generate_email(
        self,
        business: str,
        context: str,
        tone: str = "professional",
        email_length: str = "medium",
        style_prompt: str = ""
    ) -> str:
        """
        Draft a new email.

        Args:
            business: Description of the sender's business.
            context: Purpose of the email.
            tone: Requested tone.
            email_length: short, medium or long.
            style_prompt: Optional instructions derived from the user's tone profile.

        Returns:
            Email formatted as "Subject: ...\\n\\n<body>".
        """
        prompt = (
            f"The sender's business:\n\"{business}\"\n\n"
            f"Write a short subject line and a clear email body for this purpose:\n\"{context}\"\n\n"
            f"Tone: {tone}. {LENGTH_GUIDANCE.get(email_length, LENGTH_GUIDANCE['medium'])}\n"
        )
        if style_prompt:
            prompt += f"\nMatch the sender's writing style:\n{style_prompt}\n"

        text = self._complete(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            operation="generate_email"
        )
        subject, body = parse_draft(text)
        return format_email(subject, body)

    @log_execution_time()
    def improve_email(self, original_email: str, edited_email: str) -> str:
        """
        Produce a refined email that keeps the user's edits and voice.

        Returns:
            Email formatted as "Subject: ...\\n\\n<body>".
        """
        prompt = (
            f"Here is a generated email:\n\"{original_email}\"\n\n"
            "The user edited it to the following. Use the edits to improve the email "
            f"and preserve the user's voice:\n\"{edited_email}\"\n"
        )
        text = self._complete(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            operation="improve_email"
        )
        subject, body = parse_draft(text)
        return format_email(subject, body)

    def close(self) -> None:
        self._session.close()
