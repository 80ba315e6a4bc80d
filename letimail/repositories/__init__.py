"""Repositories package."""

from letimail.repositories.api_key_repository import ApiKeyRepository
from letimail.repositories.email_repository import EmailRepository
from letimail.repositories.otp_repository import OTPRepository
from letimail.repositories.user_repository import UserRepository

__all__ = ["ApiKeyRepository", "EmailRepository", "OTPRepository", "UserRepository"]
