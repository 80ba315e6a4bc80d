"""Test fixtures and configuration."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Generator, Optional
from unittest.mock import MagicMock

import pytest
from flask import Flask
from flask.testing import FlaskClient
from sqlalchemy import update

from letimail.app import create_app
from letimail.config import AppSettings, AuthSettings, DatabaseSettings, LLMSettings, MailSettings, QuotaSettings
from letimail.container import ServiceContainer
from letimail.entities import User
from letimail.services.llm_service import LLMService
from letimail.services.mail_service import MailService

OTP_CODE = "123456"
GENERATED_EMAIL = "Subject: Thank you!\n\nDear customer,\n\nThank you for visiting our bakery."
ADMIN_EMAIL = "admin@example.com"


class FakeClock:
    """Settable clock injected wherever the code asks for the time."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at noon UTC."""
    return FakeClock(datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> AppSettings:
    """Settings with an in-memory database and no outbound mail."""
    return AppSettings(
        environment="development",
        database=DatabaseSettings(url="sqlite://"),
        auth=AuthSettings(jwt_secret="test-secret", admin_emails=[ADMIN_EMAIL]),
        quota=QuotaSettings(free_email_limit=10),
        llm=LLMSettings(api_key="test-key"),
        mail=MailSettings(sendgrid_api_key="", from_email=""),
    )


@pytest.fixture
def mock_llm() -> MagicMock:
    """Mock LLM client."""
    llm = MagicMock(spec=LLMService)
    llm.generate_email.return_value = GENERATED_EMAIL
    llm.improve_email.return_value = "Subject: Thank you so much!\n\nDear customer, thanks again."
    return llm


@pytest.fixture
def mock_mail() -> MagicMock:
    """Mock mail client, disabled unless a test turns it on."""
    mail = MagicMock(spec=MailService)
    mail.enabled = False
    mail.send_email.return_value = {"message_id": "sg_msg_1", "recipient": "bob@example.com"}
    return mail


@pytest.fixture
def container(
    settings: AppSettings,
    clock: FakeClock,
    mock_llm: MagicMock,
    mock_mail: MagicMock,
    monkeypatch: pytest.MonkeyPatch
) -> Generator[ServiceContainer, None, None]:
    """Service container with a fixed verification code."""
    monkeypatch.setattr(
        "letimail.services.otp_service.generate_numeric_code",
        lambda length=6: OTP_CODE
    )
    container = ServiceContainer(settings, clock=clock, llm=mock_llm, mail=mock_mail)
    container.database.create_all()
    yield container
    container.close()


@pytest.fixture
def app(settings: AppSettings, container: ServiceContainer) -> Flask:
    """Flask application bound to the test container."""
    app = create_app(settings, container)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register_user(client: FlaskClient) -> Callable[..., dict[str, Any]]:
    """Register a user through the HTTP flow and return the response body."""

    def _register(
        email: str = "alice@example.com",
        password: str = "secret123",
        name: str = "Alice"
    ) -> dict[str, Any]:
        response = client.post("/api/auth/send-otp", json={"email": email})
        assert response.status_code == 200, response.get_json()
        response = client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password, "otp": OTP_CODE}
        )
        assert response.status_code == 201, response.get_json()
        return response.get_json()

    return _register


def set_usage(
    container: ServiceContainer,
    user_id: str,
    emails_used: int,
    daily_emails_used: int = 0,
    last_reset_date: Optional[date] = None,
    plan: Optional[str] = None
) -> None:
    """Write usage counters directly to the store."""
    values: dict[str, Any] = {
        "emails_used": emails_used,
        "daily_emails_used": daily_emails_used,
    }
    if last_reset_date is not None:
        values["last_reset_date"] = last_reset_date
    if plan is not None:
        values["plan"] = plan
    with container.database.session("set_usage") as session:
        session.execute(update(User).where(User.id == user_id).values(**values))
