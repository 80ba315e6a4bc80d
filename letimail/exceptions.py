"""
Custom Exception Hierarchy
==========================

Provides a structured exception hierarchy for the LetiMail backend
with error codes, HTTP status mapping, messages, and context preservation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    # Generic errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"

    # Auth errors (2xxx)
    MISSING_CREDENTIAL = "ERR_2000"
    INVALID_TOKEN = "ERR_2001"
    EXPIRED_TOKEN = "ERR_2002"
    MALFORMED_TOKEN = "ERR_2003"
    INVALID_CREDENTIALS = "ERR_2004"
    USER_NOT_FOUND = "ERR_2005"
    FORBIDDEN = "ERR_2006"
    INSUFFICIENT_SCOPE = "ERR_2007"
    INVALID_API_KEY = "ERR_2008"

    # Quota errors (3xxx)
    QUOTA_EXCEEDED = "ERR_3000"

    # OTP errors (4xxx)
    OTP_NOT_FOUND = "ERR_4000"
    OTP_EXPIRED = "ERR_4001"
    OTP_INVALID = "ERR_4002"
    OTP_ATTEMPTS_EXCEEDED = "ERR_4003"

    # Upstream and store errors (5xxx)
    LLM_ERROR = "ERR_5000"
    MAIL_PROVIDER_ERROR = "ERR_5001"
    STORE_ERROR = "ERR_5002"


@dataclass
class ErrorContext:
    """Context information for error tracking and debugging."""

    operation: str = ""
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    additional_info: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging/serialization."""
        result = {"operation": self.operation}
        if self.resource_id:
            result["resource_id"] = self.resource_id
        if self.resource_type:
            result["resource_type"] = self.resource_type
        if self.additional_info:
            result.update(self.additional_info)
        return result


class LetiMailError(Exception):
    """
    Base exception for all LetiMail errors.

    Provides structured error information including:
    - Error code for programmatic handling
    - HTTP status code for the API layer
    - Human-readable message
    - Context for debugging
    - Original exception preservation

    Example:
        >>> raise LetiMailError(
        ...     message="Failed to load user",
        ...     code=ErrorCode.INTERNAL_ERROR,
        ...     context=ErrorContext(operation="get_user", resource_id="abc123")
        ... )
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error description.
            code: Standardized error code.
            context: Additional context for debugging.
            cause: Original exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or ErrorContext()
        self.cause = cause

    @property
    def is_client_error(self) -> bool:
        """Check if the error is the caller's fault (4xx)."""
        return self.status_code < 500

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API responses.

        Returns:
            Dictionary with error details suitable for JSON serialization.
        """
        return {
            "error": self.message,
            "code": self.code.value,
        }

    def __str__(self) -> str:
        """Format exception as string with context."""
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.operation:
            parts.append(f"(operation: {self.context.operation})")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " ".join(parts)


# Validation exceptions
class ValidationError(LetiMailError):
    """Raised when request validation fails."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        **kwargs: Any
    ) -> None:
        context = kwargs.pop("context", ErrorContext())
        if field:
            context.additional_info["field"] = field
        super().__init__(message=message, code=code, context=context, **kwargs)


class OTPNotFoundError(ValidationError):
    """Raised when no verification code was requested for an email."""

    def __init__(self, message: str = "No verification code requested for this email", **kwargs: Any) -> None:
        super().__init__(message=message, field="otp", code=ErrorCode.OTP_NOT_FOUND, **kwargs)


class OTPExpiredError(ValidationError):
    """Raised when the verification code has expired."""

    def __init__(self, message: str = "Verification code has expired", **kwargs: Any) -> None:
        super().__init__(message=message, field="otp", code=ErrorCode.OTP_EXPIRED, **kwargs)


class InvalidOTPError(ValidationError):
    """Raised when the supplied verification code does not match."""

    def __init__(self, message: str = "Invalid verification code", **kwargs: Any) -> None:
        super().__init__(message=message, field="otp", code=ErrorCode.OTP_INVALID, **kwargs)


class OTPAttemptsExceededError(ValidationError):
    """Raised when too many wrong codes were tried for one challenge."""

    def __init__(
        self,
        message: str = "Too many failed attempts, request a new code",
        **kwargs: Any
    ) -> None:
        super().__init__(message=message, field="otp", code=ErrorCode.OTP_ATTEMPTS_EXCEEDED, **kwargs)


# Auth exceptions
class AuthError(LetiMailError):
    """Base exception for credential failures (401)."""

    status_code = 401

    def __init__(
        self,
        message: str = "Unauthorized",
        code: ErrorCode = ErrorCode.INVALID_TOKEN,
        **kwargs: Any
    ) -> None:
        super().__init__(message=message, code=code, **kwargs)


class MissingCredentialError(AuthError):
    """Raised when the request carries no credential."""

    def __init__(self, message: str = "Access token required", **kwargs: Any) -> None:
        super().__init__(message=message, code=ErrorCode.MISSING_CREDENTIAL, **kwargs)


class InvalidTokenError(AuthError):
    """Raised when a token signature does not verify."""

    def __init__(self, message: str = "Invalid token", **kwargs: Any) -> None:
        super().__init__(message=message, code=ErrorCode.INVALID_TOKEN, **kwargs)


class ExpiredTokenError(AuthError):
    """Raised when a token is past its expiry."""

    def __init__(self, message: str = "Token has expired", **kwargs: Any) -> None:
        super().__init__(message=message, code=ErrorCode.EXPIRED_TOKEN, **kwargs)


class MalformedTokenError(AuthError):
    """Raised when a token cannot be parsed."""

    def __init__(self, message: str = "Malformed token", **kwargs: Any) -> None:
        super().__init__(message=message, code=ErrorCode.MALFORMED_TOKEN, **kwargs)


class InvalidCredentialsError(AuthError):
    """Raised when email/password do not match."""

    def __init__(self, message: str = "Invalid email or password", **kwargs: Any) -> None:
        super().__init__(message=message, code=ErrorCode.INVALID_CREDENTIALS, **kwargs)


class InvalidApiKeyError(AuthError):
    """Raised when an API key is unknown or revoked."""

    def __init__(self, message: str = "Invalid API key", **kwargs: Any) -> None:
        super().__init__(message=message, code=ErrorCode.INVALID_API_KEY, **kwargs)


class ForbiddenError(LetiMailError):
    """Raised when an authenticated caller may not perform the action (403)."""

    status_code = 403

    def __init__(
        self,
        message: str = "Forbidden",
        code: ErrorCode = ErrorCode.FORBIDDEN,
        **kwargs: Any
    ) -> None:
        super().__init__(message=message, code=code, **kwargs)


class UserNotFoundError(ForbiddenError):
    """Raised when a valid credential points at a user that no longer exists."""

    def __init__(self, user_id: str, message: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.pop("context", ErrorContext())
        context.resource_id = user_id
        context.resource_type = "user"
        super().__init__(
            message=message or "User not found",
            code=ErrorCode.USER_NOT_FOUND,
            context=context,
            **kwargs
        )


class InsufficientScopeError(ForbiddenError):
    """Raised when an API key lacks the scope an endpoint requires."""

    def __init__(self, scope: str, **kwargs: Any) -> None:
        context = kwargs.pop("context", ErrorContext())
        context.additional_info["scope"] = scope
        super().__init__(
            message=f"API key lacks the '{scope}' permission",
            code=ErrorCode.INSUFFICIENT_SCOPE,
            context=context,
            **kwargs
        )


class QuotaExceededError(ForbiddenError):
    """Raised when a free-plan user has used up the generation quota."""

    def __init__(
        self,
        limit: int,
        message: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        context = kwargs.pop("context", ErrorContext())
        context.additional_info["limit"] = limit
        super().__init__(
            message=message or f"Free plan limit of {limit} emails reached. Upgrade to premium to continue.",
            code=ErrorCode.QUOTA_EXCEEDED,
            context=context,
            **kwargs
        )
        self.limit = limit


# Resource exceptions
class NotFoundError(LetiMailError):
    """Raised when a requested resource does not exist for the caller."""

    status_code = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        context = kwargs.pop("context", ErrorContext())
        context.resource_id = resource_id
        context.resource_type = resource_type
        super().__init__(
            message=message or f"{resource_type.replace('_', ' ').capitalize()} not found",
            code=ErrorCode.NOT_FOUND,
            context=context,
            **kwargs
        )


# Upstream exceptions
class UpstreamError(LetiMailError):
    """Base exception for external service errors."""

    status_code = 500
    public_message = "Upstream service error"

    def __init__(
        self,
        message: str,
        service_name: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        **kwargs: Any
    ) -> None:
        context = kwargs.pop("context", ErrorContext())
        context.additional_info["service"] = service_name
        super().__init__(message=message, code=code, context=context, **kwargs)


class LLMServiceError(UpstreamError):
    """Raised when the LLM completion API fails."""

    public_message = "Failed to generate email"

    def __init__(self, message: str = "LLM service error", **kwargs: Any) -> None:
        super().__init__(
            message=message,
            service_name="llm",
            code=ErrorCode.LLM_ERROR,
            **kwargs
        )


class MailProviderError(UpstreamError):
    """Raised when the transactional email provider fails."""

    public_message = "Failed to send email"

    def __init__(
        self,
        message: str = "Mail provider error",
        recipient: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        context = kwargs.pop("context", ErrorContext())
        if recipient:
            context.additional_info["recipient"] = recipient
        super().__init__(
            message=message,
            service_name="sendgrid",
            code=ErrorCode.MAIL_PROVIDER_ERROR,
            context=context,
            **kwargs
        )


class StoreError(LetiMailError):
    """Raised when the relational store fails."""

    status_code = 500
    public_message = "Database error"

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message=message, code=ErrorCode.STORE_ERROR, **kwargs)
