"""
Tests for Configuration
=======================

Settings loading from the environment and a local .env file.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from letimail.config import DEFAULT_JWT_SECRET, AppSettings, Environment

ENV_NAMES = (
    "ENVIRONMENT",
    "JWT_SECRET",
    "ADMIN_EMAILS",
    "FREE_EMAIL_LIMIT",
    "OTP_MAX_ATTEMPTS",
    "DATABASE_URL",
    "SENDGRID_API_KEY",
    "FROM_EMAIL",
)


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Empty working directory with no settings in the process environment."""
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestDotEnv:
    """Tests for values read from .env."""

    def test_nested_settings_read_env_file(self, workdir: Path) -> None:
        """Test every settings group picks up its values from .env."""
        (workdir / ".env").write_text(
            "ENVIRONMENT=production\n"
            "JWT_SECRET=prod-secret\n"
            "FREE_EMAIL_LIMIT=3\n"
            "OTP_MAX_ATTEMPTS=4\n"
            "DATABASE_URL=postgres://db.internal/letimail\n"
            "SENDGRID_API_KEY=SG.live\n"
            "FROM_EMAIL=hello@letimail.com\n"
        )

        settings = AppSettings()

        assert settings.environment == Environment.PRODUCTION
        assert settings.auth.jwt_secret == "prod-secret"
        assert settings.quota.free_email_limit == 3
        assert settings.otp.max_attempts == 4
        assert settings.database.url == "postgresql://db.internal/letimail"
        assert settings.mail.enabled is True

    def test_process_environment_wins(self, workdir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (workdir / ".env").write_text("JWT_SECRET=from-file\n")
        monkeypatch.setenv("JWT_SECRET", "from-env")
        assert AppSettings().auth.jwt_secret == "from-env"


class TestProductionSecret:
    """Tests for the production token secret guard."""

    def test_default_secret_refused(self, workdir: Path) -> None:
        (workdir / ".env").write_text("ENVIRONMENT=production\n")
        with pytest.raises(ValidationError, match="JWT_SECRET"):
            AppSettings()

    def test_empty_secret_refused(self, workdir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("JWT_SECRET", "")
        with pytest.raises(ValidationError):
            AppSettings()

    def test_default_secret_allowed_in_development(self, workdir: Path) -> None:
        settings = AppSettings()
        assert settings.is_development
        assert settings.auth.jwt_secret == DEFAULT_JWT_SECRET


class TestListSettings:
    """Tests for comma separated list settings."""

    def test_admin_emails_split(self, workdir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ADMIN_EMAILS", "ops@letimail.com, founder@letimail.com")
        assert AppSettings().auth.admin_emails == ["ops@letimail.com", "founder@letimail.com"]
