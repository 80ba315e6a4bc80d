"""
Tests for Email Routes
======================

Generation metering, refinement and sending over HTTP.
"""

from __future__ import annotations

from typing import Any, Callable
from unittest.mock import MagicMock

from flask.testing import FlaskClient

from conftest import GENERATED_EMAIL, OTP_CODE, FakeClock, auth_headers, set_usage
from letimail.container import ServiceContainer
from letimail.exceptions import ErrorCode, LLMServiceError, MailProviderError

GENERATE_BODY = {"business": "bakery", "context": "thank a customer"}


class TestEndToEnd:
    """The full signup-to-first-email flow."""

    def test_signup_then_generate(self, client: FlaskClient, container: ServiceContainer) -> None:
        response = client.post("/api/auth/send-otp", json={"email": "gina@example.com"})
        assert response.status_code == 200

        response = client.post(
            "/api/auth/register",
            json={"name": "Gina", "email": "gina@example.com", "password": "secret123", "otp": OTP_CODE}
        )
        assert response.status_code == 201
        token = response.get_json()["token"]
        user_id = response.get_json()["user"]["id"]

        response = client.post("/api/generate", json=GENERATE_BODY, headers=auth_headers(token))
        body = response.get_json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["email"].startswith("Subject: ")
        assert "\n\n" in body["email"]
        assert body["usage"]["emails_used"] == 1

        assert container.users.get_by_id(user_id).emails_used == 1


class TestGenerate:
    """Tests for POST /api/generate."""

    def test_passes_request_to_llm(
        self,
        client: FlaskClient,
        mock_llm: MagicMock,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        token = register_user()["token"]
        client.post(
            "/api/generate",
            json={**GENERATE_BODY, "tone": "friendly", "emailLength": "short", "stylePrompt": "Warm"},
            headers=auth_headers(token)
        )
        mock_llm.generate_email.assert_called_once_with(
            business="bakery",
            context="thank a customer",
            tone="friendly",
            email_length="short",
            style_prompt="Warm",
        )

    def test_ninth_to_tenth(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        clock: FakeClock,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        """Test the last free email succeeds and fills the ledger."""
        body = register_user()
        set_usage(container, body["user"]["id"], emails_used=9, daily_emails_used=1,
                  last_reset_date=clock.now.date())

        response = client.post("/api/generate", json=GENERATE_BODY, headers=auth_headers(body["token"]))
        assert response.status_code == 200
        usage = response.get_json()["usage"]
        assert usage["emails_used"] == 10
        assert usage["daily_emails_used"] == 2
        assert usage["remaining"] == 0

    def test_quota_exceeded(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        mock_llm: MagicMock,
        clock: FakeClock,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        """Test the eleventh email is refused before the LLM is called."""
        body = register_user()
        user_id = body["user"]["id"]
        set_usage(container, user_id, emails_used=10, daily_emails_used=5, last_reset_date=clock.now.date())

        response = client.post("/api/generate", json=GENERATE_BODY, headers=auth_headers(body["token"]))
        assert response.status_code == 403
        assert response.get_json()["code"] == ErrorCode.QUOTA_EXCEEDED.value
        mock_llm.generate_email.assert_not_called()

        user = container.users.get_by_id(user_id)
        assert user.emails_used == 10
        assert user.daily_emails_used == 5

    def test_failed_llm_does_not_consume(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        mock_llm: MagicMock,
        clock: FakeClock,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        """Test an upstream failure leaves both counters alone."""
        body = register_user()
        user_id = body["user"]["id"]
        set_usage(container, user_id, emails_used=9, daily_emails_used=1, last_reset_date=clock.now.date())
        mock_llm.generate_email.side_effect = LLMServiceError("LLM request timed out")

        response = client.post("/api/generate", json=GENERATE_BODY, headers=auth_headers(body["token"]))
        assert response.status_code == 500
        assert response.get_json()["code"] == ErrorCode.LLM_ERROR.value

        user = container.users.get_by_id(user_id)
        assert user.emails_used == 9
        assert user.daily_emails_used == 1
        assert container.emails.count_for_user(user_id) == 0

    def test_daily_rollover(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        clock: FakeClock,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        """Test the daily counter restarts on the first request of a new day."""
        body = register_user()
        headers = auth_headers(body["token"])
        client.post("/api/generate", json=GENERATE_BODY, headers=headers)
        client.post("/api/generate", json=GENERATE_BODY, headers=headers)

        clock.advance(days=1)
        me = client.get("/api/auth/me", headers=headers).get_json()["user"]
        assert me["daily_emails_used"] == 0
        assert me["emails_used"] == 2

        usage = client.post("/api/generate", json=GENERATE_BODY, headers=headers).get_json()["usage"]
        assert usage["daily_emails_used"] == 1
        assert usage["emails_used"] == 3

    def test_premium_unmetered(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        body = register_user()
        set_usage(container, body["user"]["id"], emails_used=40, plan="premium")
        response = client.post("/api/generate", json=GENERATE_BODY, headers=auth_headers(body["token"]))
        assert response.status_code == 200
        assert response.get_json()["usage"]["remaining"] is None

    def test_records_history(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        body = register_user()
        response = client.post("/api/generate", json=GENERATE_BODY, headers=auth_headers(body["token"]))
        record = container.emails.get_for_user(body["user"]["id"], response.get_json()["id"])
        assert record.kind == "generated"
        assert record.subject == "Thank you!"
        assert record.business == "bakery"

    def test_requires_auth(self, client: FlaskClient) -> None:
        response = client.post("/api/generate", json=GENERATE_BODY)
        assert response.status_code == 401

    def test_missing_fields(self, client: FlaskClient, register_user: Callable[..., dict[str, Any]]) -> None:
        token = register_user()["token"]
        response = client.post("/api/generate", json={"business": "bakery"}, headers=auth_headers(token))
        assert response.status_code == 400
        assert "context" in response.get_json()["error"]

    def test_upstream_details_hidden_in_production(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        mock_llm: MagicMock,
        register_user: Callable[..., dict[str, Any]],
        monkeypatch: Any
    ) -> None:
        """Test production responses carry a generic message only."""
        from letimail.config import Environment

        token = register_user()["token"]
        monkeypatch.setattr(container.settings, "environment", Environment.PRODUCTION)
        mock_llm.generate_email.side_effect = LLMServiceError("LLM API returned status 429")

        response = client.post("/api/generate", json=GENERATE_BODY, headers=auth_headers(token))
        assert response.status_code == 500
        assert response.get_json() == {
            "error": "Failed to generate email",
            "code": ErrorCode.LLM_ERROR.value,
        }


class TestImproveEmail:
    """Tests for POST /api/improve-email."""

    def test_improve(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        mock_llm: MagicMock,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        """Test refinement is returned and not metered."""
        body = register_user()
        response = client.post(
            "/api/improve-email",
            json={"originalEmail": GENERATED_EMAIL, "editedEmail": "Subject: Thanks\n\nHi, thanks!"},
            headers=auth_headers(body["token"])
        )
        assert response.status_code == 200
        assert response.get_json()["improvedEmail"].startswith("Subject: Thank you so much!")
        mock_llm.improve_email.assert_called_once_with(GENERATED_EMAIL, "Subject: Thanks\n\nHi, thanks!")
        assert container.users.get_by_id(body["user"]["id"]).emails_used == 0

    def test_missing_edit(self, client: FlaskClient, register_user: Callable[..., dict[str, Any]]) -> None:
        token = register_user()["token"]
        response = client.post("/api/improve-email", json={"originalEmail": "x"}, headers=auth_headers(token))
        assert response.status_code == 400


class TestSendEmail:
    """Tests for POST /api/send-email."""

    def test_kept_as_draft_without_provider(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        mock_mail: MagicMock,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        body = register_user()
        response = client.post(
            "/api/send-email",
            json={"to": "bob@example.com", "content": GENERATED_EMAIL},
            headers=auth_headers(body["token"])
        )
        assert response.status_code == 200
        result = response.get_json()
        assert result["sent"] is False
        mock_mail.send_email.assert_not_called()

        record = container.emails.get_for_user(body["user"]["id"], result["id"])
        assert record.status == "draft"
        assert record.kind == "sent"
        assert record.subject == "Thank you!"
        assert record.recipient == "bob@example.com"

    def test_dispatched_with_provider(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        mock_mail: MagicMock,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        body = register_user()
        mock_mail.enabled = True
        response = client.post(
            "/api/send-email",
            json={
                "to": "bob@example.com",
                "subject": "Hello",
                "content": "Hi **Bob**",
                "businessName": "Gina's Bakery",
                "replyToEmail": "gina@bakery.example.com",
            },
            headers=auth_headers(body["token"])
        )
        assert response.status_code == 200
        assert response.get_json()["sent"] is True
        mock_mail.send_email.assert_called_once_with(
            to_email="bob@example.com",
            subject="Hello",
            body="Hi **Bob**",
            from_name="Gina's Bakery",
            reply_to="gina@bakery.example.com",
        )
        record = container.emails.get_for_user(body["user"]["id"], response.get_json()["id"])
        assert record.status == "sent"
        assert record.provider_message_id == "sg_msg_1"

    def test_provider_failure_recorded(
        self,
        client: FlaskClient,
        container: ServiceContainer,
        mock_mail: MagicMock,
        register_user: Callable[..., dict[str, Any]]
    ) -> None:
        body = register_user()
        mock_mail.enabled = True
        mock_mail.send_email.side_effect = MailProviderError("Mail provider returned status 401")
        response = client.post(
            "/api/send-email",
            json={"to": "bob@example.com", "subject": "Hello", "content": "Hi"},
            headers=auth_headers(body["token"])
        )
        assert response.status_code == 500
        assert response.get_json()["code"] == ErrorCode.MAIL_PROVIDER_ERROR.value

        records, total = container.emails.list_for_user(body["user"]["id"])
        assert total == 1
        assert records[0].status == "failed"

    def test_invalid_recipient(self, client: FlaskClient, register_user: Callable[..., dict[str, Any]]) -> None:
        token = register_user()["token"]
        response = client.post(
            "/api/send-email",
            json={"to": "bob", "content": "Hi"},
            headers=auth_headers(token)
        )
        assert response.status_code == 400
