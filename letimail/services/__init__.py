"""Services package."""

from letimail.services.account_service import AccountService
from letimail.services.api_key_service import ApiKeyService
from letimail.services.auth_service import AuthService
from letimail.services.email_service import EmailService
from letimail.services.llm_service import LLMService
from letimail.services.mail_service import MailService
from letimail.services.otp_service import OTPService, OTPState
from letimail.services.quota_ledger import QuotaLedger
from letimail.services.token_service import TokenService

__all__ = [
    "AccountService",
    "ApiKeyService",
    "AuthService",
    "EmailService",
    "LLMService",
    "MailService",
    "OTPService",
    "OTPState",
    "QuotaLedger",
    "TokenService",
]
