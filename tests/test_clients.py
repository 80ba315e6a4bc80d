"""
Tests for the LLM and Mail Clients
==================================

HTTP sessions are mocked; no network access.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from letimail.config import LLMSettings, MailSettings
from letimail.exceptions import LLMServiceError, MailProviderError
from letimail.services.llm_service import LLMService, format_email, parse_draft
from letimail.services.mail_service import MailService


def _response(status_code: int = 200, json_data: object = None, text: str = "", headers: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.text = text
    response.headers = headers or {}
    return response


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def http_session() -> MagicMock:
    return MagicMock(spec=requests.Session)


class TestParseDraft:
    """Tests for completion parsing."""

    def test_json_answer(self) -> None:
        assert parse_draft('{"subject": "Hi", "body": "Hello Bob"}') == ("Hi", "Hello Bob")

    def test_json_wrapped_in_prose(self) -> None:
        text = 'Here you go:\n```json\n{"subject": "Hi", "body": "Hello Bob"}\n```'
        assert parse_draft(text) == ("Hi", "Hello Bob")

    def test_subject_header(self) -> None:
        assert parse_draft("Subject: Hi\n\nHello Bob") == ("Hi", "Hello Bob")

    def test_plain_text(self) -> None:
        assert parse_draft("Hello Bob") == ("", "Hello Bob")

    def test_format(self) -> None:
        assert format_email(" Hi ", "Hello Bob\n") == "Subject: Hi\n\nHello Bob"


class TestLLMService:
    """Tests for LLMService."""

    def test_generate_email(self, http_session: MagicMock) -> None:
        """Test the request shape and the formatted result."""
        http_session.post.return_value = _response(
            json_data=_completion('{"subject": "Thank you!", "body": "Dear customer, thank you."}')
        )
        llm = LLMService(LLMSettings(api_key="gsk_test", model="test-model"), session=http_session)

        email = llm.generate_email("bakery", "thank a customer", tone="warm", email_length="short")

        assert email == "Subject: Thank you!\n\nDear customer, thank you."
        args, kwargs = http_session.post.call_args
        assert args[0] == "https://api.groq.com/openai/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer gsk_test"
        assert kwargs["json"]["model"] == "test-model"
        assert "bakery" in kwargs["json"]["messages"][1]["content"]
        assert "warm" in kwargs["json"]["messages"][1]["content"]
        assert kwargs["timeout"][1] == 30.0

    def test_improve_email(self, http_session: MagicMock) -> None:
        http_session.post.return_value = _response(json_data=_completion("Subject: Better\n\nImproved body"))
        llm = LLMService(LLMSettings(api_key="gsk_test"), session=http_session)
        assert llm.improve_email("original", "edited") == "Subject: Better\n\nImproved body"

    def test_not_configured(self, http_session: MagicMock) -> None:
        llm = LLMService(LLMSettings(api_key=""), session=http_session)
        with pytest.raises(LLMServiceError):
            llm.generate_email("bakery", "thank a customer")
        http_session.post.assert_not_called()

    def test_http_error(self, http_session: MagicMock) -> None:
        http_session.post.return_value = _response(status_code=429, text="rate limited")
        llm = LLMService(LLMSettings(api_key="gsk_test"), session=http_session)
        with pytest.raises(LLMServiceError) as exc_info:
            llm.generate_email("bakery", "thank a customer")
        assert "429" in exc_info.value.message

    def test_timeout(self, http_session: MagicMock) -> None:
        http_session.post.side_effect = requests.exceptions.Timeout()
        llm = LLMService(LLMSettings(api_key="gsk_test"), session=http_session)
        with pytest.raises(LLMServiceError, match="timed out"):
            llm.generate_email("bakery", "thank a customer")

    def test_unexpected_payload(self, http_session: MagicMock) -> None:
        http_session.post.return_value = _response(json_data={"output": []})
        llm = LLMService(LLMSettings(api_key="gsk_test"), session=http_session)
        with pytest.raises(LLMServiceError):
            llm.generate_email("bakery", "thank a customer")

    def test_empty_completion(self, http_session: MagicMock) -> None:
        http_session.post.return_value = _response(json_data=_completion("   "))
        llm = LLMService(LLMSettings(api_key="gsk_test"), session=http_session)
        with pytest.raises(LLMServiceError):
            llm.generate_email("bakery", "thank a customer")


@pytest.fixture
def mail_settings() -> MailSettings:
    return MailSettings(sendgrid_api_key="SG.test", from_email="hello@letimail.com")


class TestMailService:
    """Tests for MailService."""

    def test_send_email(self, http_session: MagicMock, mail_settings: MailSettings) -> None:
        """Test the SendGrid payload."""
        http_session.post.return_value = _response(status_code=202, headers={"X-Message-Id": "abc123"})
        mail = MailService(mail_settings, session=http_session)

        result = mail.send_email(
            to_email="bob@example.com",
            subject="Hello",
            body="Hi **Bob**",
            from_name="Gina's Bakery",
            reply_to="gina@example.com"
        )

        assert result == {"message_id": "abc123", "recipient": "bob@example.com"}
        payload = http_session.post.call_args.kwargs["json"]
        assert payload["personalizations"] == [{"to": [{"email": "bob@example.com"}]}]
        assert payload["from"] == {"email": "hello@letimail.com", "name": "Gina's Bakery"}
        assert payload["reply_to"] == {"email": "gina@example.com"}
        html = payload["content"][1]["value"]
        assert "<strong>Bob</strong>" in html

    def test_rejected(self, http_session: MagicMock, mail_settings: MailSettings) -> None:
        http_session.post.return_value = _response(status_code=401, text="unauthorized")
        mail = MailService(mail_settings, session=http_session)
        with pytest.raises(MailProviderError):
            mail.send_email(to_email="bob@example.com", subject="Hello", body="Hi")

    def test_not_configured(self, http_session: MagicMock) -> None:
        mail = MailService(MailSettings(sendgrid_api_key="", from_email=""), session=http_session)
        assert mail.enabled is False
        with pytest.raises(MailProviderError):
            mail.send_email(to_email="bob@example.com", subject="Hello", body="Hi")
        http_session.post.assert_not_called()

    def test_send_otp(self, http_session: MagicMock, mail_settings: MailSettings) -> None:
        http_session.post.return_value = _response(status_code=202)
        mail = MailService(mail_settings, session=http_session)
        mail.send_otp("erin@example.com", "424242")
        payload = http_session.post.call_args.kwargs["json"]
        assert "424242" in payload["content"][0]["value"]
        assert payload["personalizations"][0]["to"][0]["email"] == "erin@example.com"

    def test_markdown_line_breaks(self, mail_settings: MailSettings) -> None:
        """Test single newlines survive rendering."""
        html = MailService(mail_settings, session=MagicMock()).markdown_to_html("Line one\nLine two")
        assert "<br" in html
