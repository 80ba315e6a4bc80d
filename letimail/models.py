"""
Data Models
===========

Pydantic models for request/response validation and type safety,
plus the versioned documents stored in JSON columns.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class Plan(str, Enum):
    """Subscription plan of a user."""
    FREE = "free"
    PREMIUM = "premium"


class EmailLength(str, Enum):
    """Requested length of a generated email."""
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class EmailKind(str, Enum):
    """How an email history entry was produced."""
    GENERATED = "generated"
    IMPROVED = "improved"
    SENT = "sent"


class EmailStatus(str, Enum):
    """Delivery status of an email history entry."""
    DRAFT = "draft"
    SENT = "sent"
    FAILED = "failed"


class ApiScope(str, Enum):
    """Permissions an API key can carry."""
    GENERATE = "generate"
    IMPROVE = "improve"
    SEND = "send"
    HISTORY = "history"


# ============================================================================
# Request Models
# ============================================================================

class BaseRequestModel(BaseModel):
    """Base model for all requests with common configuration."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="ignore"
    )


class SendOTPRequest(BaseRequestModel):
    """Request a verification code for an email address."""

    email: EmailStr


class VerifyOTPRequest(BaseRequestModel):
    """Check a verification code."""

    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10, pattern=r"^\d+$")


class RegisterRequest(BaseRequestModel):
    """Create an account once the email was verified."""

    name: str = Field(default="", max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6)
    otp: str = Field(..., min_length=4, max_length=10, pattern=r"^\d+$")

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        """bcrypt only looks at the first 72 bytes."""
        if len(v.encode("utf-8")) > 72:
            raise ValueError("password must be at most 72 bytes")
        return v


class LoginRequest(BaseRequestModel):
    """Exchange email and password for a session token."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class GenerateRequest(BaseRequestModel):
    """Draft a new email."""

    business: str = Field(..., min_length=1, max_length=2000)
    context: str = Field(..., min_length=1, max_length=4000)
    tone: str = Field(default="professional", max_length=50)
    email_length: EmailLength = Field(default=EmailLength.MEDIUM, alias="emailLength")
    style_prompt: str = Field(default="", max_length=8000, alias="stylePrompt")


class ImproveEmailRequest(BaseRequestModel):
    """Refine a generated email using the user's edits."""

    original_email: str = Field(..., min_length=1, max_length=20000, alias="originalEmail")
    edited_email: str = Field(..., min_length=1, max_length=20000, alias="editedEmail")


class SendEmailRequest(BaseRequestModel):
    """Record and dispatch a finished email."""

    to: EmailStr
    subject: str = Field(default="", max_length=998)
    content: str = Field(..., min_length=1, max_length=50000)
    business_name: str = Field(default="", max_length=255, alias="businessName")
    reply_to_email: Optional[EmailStr] = Field(default=None, alias="replyToEmail")

    @field_validator("subject")
    @classmethod
    def clean_subject(cls, v: str) -> str:
        """Remove any newlines from subject."""
        return v.replace("\n", " ").replace("\r", " ").strip()

    @field_validator("reply_to_email", mode="before")
    @classmethod
    def blank_reply_to(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CreateApiKeyRequest(BaseRequestModel):
    """Create a named API key."""

    name: str = Field(..., min_length=1, max_length=100)
    permissions: list[ApiScope] = Field(
        default_factory=lambda: [ApiScope.GENERATE, ApiScope.IMPROVE, ApiScope.HISTORY]
    )


class HistoryQuery(BaseRequestModel):
    """Pagination parameters for history listing."""

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1, le=100)


# ============================================================================
# Versioned JSON documents
# ============================================================================

class VersionedDocument(BaseModel):
    """Base for JSON blobs persisted on a row; shape is pinned by schema_version."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True
    )

    schema_version: Literal[1] = Field(default=1, alias="schemaVersion")


class NotificationPreferences(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_updates: bool = Field(default=True, alias="productUpdates")
    usage_alerts: bool = Field(default=True, alias="usageAlerts")


class Preferences(VersionedDocument):
    """Editor preferences of a user."""

    default_tone: str = Field(default="professional", max_length=50, alias="defaultTone")
    email_length: EmailLength = Field(default=EmailLength.MEDIUM, alias="emailLength")
    auto_save: bool = Field(default=True, alias="autoSave")
    spell_check: bool = Field(default=True, alias="spellCheck")
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)


class ReferenceEmail(BaseModel):
    """An email the user supplied so drafts imitate their voice."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, max_length=64)
    content: str = Field(..., min_length=1, max_length=20000)
    date_added: Optional[datetime] = Field(default=None, alias="dateAdded")
    last_edited: Optional[datetime] = Field(default=None, alias="lastEdited")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        # Browser clients use Date.now() numbers as ids
        if isinstance(v, int):
            return str(v)
        return v


class EditedEmail(ReferenceEmail):
    """A generated email after the user edited it."""

    original: str = Field(default="", max_length=20000)
    similarity: Optional[float] = Field(default=None, ge=0, le=1)


class ToneProfile(VersionedDocument):
    """Writing-style training data of a user."""

    MAX_EMAILS: ClassVar[int] = 50
    MAX_EDITED_EMAILS: ClassVar[int] = 20

    trained: bool = False
    emails: list[ReferenceEmail] = Field(default_factory=list, max_length=MAX_EMAILS)
    edited_emails: list[EditedEmail] = Field(default_factory=list, alias="editedEmails")
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")

    @field_validator("edited_emails")
    @classmethod
    def keep_latest_edits(cls, v: list[EditedEmail]) -> list[EditedEmail]:
        """Only the most recent edits are kept."""
        return v[-cls.MAX_EDITED_EMAILS:]


class ApiKeyPermissions(VersionedDocument):
    """Scopes granted to an API key."""

    scopes: list[ApiScope] = Field(default_factory=list)

    def allows(self, scope: ApiScope) -> bool:
        return scope in self.scopes


# ============================================================================
# Response Models
# ============================================================================

class BaseResponseModel(BaseModel):
    """Base model for all responses."""

    model_config = ConfigDict(
        from_attributes=True
    )


class QuotaSnapshot(BaseResponseModel):
    """Usage counters of a user as seen by the quota ledger."""

    plan: Plan
    emails_used: int
    daily_emails_used: int
    limit: Optional[int] = None
    remaining: Optional[int] = None
    last_reset_date: date


class UserProfile(BaseResponseModel):
    """Public view of a user."""

    id: str
    email: str
    name: str
    plan: Plan
    emails_used: int
    daily_emails_used: int
    emails_limit: Optional[int] = None
    emails_remaining: Optional[int] = None
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @classmethod
    def build(cls, user: Any, quota: QuotaSnapshot) -> UserProfile:
        """Combine a user row with its quota snapshot."""
        return cls(
            id=user.id,
            email=user.email,
            name=user.name or "",
            plan=quota.plan,
            emails_used=quota.emails_used,
            daily_emails_used=quota.daily_emails_used,
            emails_limit=quota.limit,
            emails_remaining=quota.remaining,
            created_at=user.created_at,
            last_login_at=user.last_login_at,
        )


class EmailRecordDTO(BaseResponseModel):
    """Email history entry."""

    id: str
    kind: EmailKind
    status: EmailStatus
    recipient: Optional[str] = None
    subject: Optional[str] = None
    body: str
    business: Optional[str] = None
    context: Optional[str] = None
    tone: Optional[str] = None
    created_at: Optional[datetime] = None


class ApiKeyDTO(BaseResponseModel):
    """API key without its secret."""

    id: str
    name: str
    key_prefix: str
    permissions: list[ApiScope]
    is_active: bool
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, key: Any) -> ApiKeyDTO:
        return cls(
            id=key.id,
            name=key.name,
            key_prefix=key.key_prefix,
            permissions=ApiKeyPermissions.model_validate(key.permissions or {}).scopes,
            is_active=key.is_active,
            last_used_at=key.last_used_at,
            created_at=key.created_at,
        )
