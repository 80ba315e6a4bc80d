"""
ORM entities for the relational store.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from letimail.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends that store naive values."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False, default="")
    password_hash = Column(String(255), nullable=False)
    plan = Column(String(20), nullable=False, default="free")
    emails_used = Column(Integer, nullable=False, default=0)
    daily_emails_used = Column(Integer, nullable=False, default=0)
    last_reset_date = Column(Date, nullable=False, default=lambda: utcnow().date())
    preferences = Column(JSON, nullable=True)
    tone_profile = Column(JSON, nullable=True)
    last_login_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    emails = relationship(
        "EmailRecord", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    api_keys = relationship(
        "ApiKey", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<User {self.id} plan={self.plan}>"


class OTPChallenge(Base):
    __tablename__ = "otp_challenges"

    # One active challenge per email
    email = Column(String(255), primary_key=True)
    code_hash = Column(String(64), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    expires_at = Column(UTCDateTime(), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)


class EmailRecord(Base):
    __tablename__ = "email_history"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    kind = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="draft")
    recipient = Column(String(255), nullable=True)
    subject = Column(String(998), nullable=True)
    body = Column(Text, nullable=False, default="")
    business = Column(Text, nullable=True)
    context = Column(Text, nullable=True)
    tone = Column(String(50), nullable=True)
    provider_message_id = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow, index=True)

    user = relationship("User", back_populates="emails")


class ApiKey(Base):
    __tablename__ = "api_keys"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String(100), nullable=False)
    key_prefix = Column(String(16), nullable=False)
    key_hash = Column(String(64), unique=True, index=True, nullable=False)
    permissions = Column(JSON, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_used_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    user = relationship("User", back_populates="api_keys")


__all__ = ["ApiKey", "EmailRecord", "OTPChallenge", "UTCDateTime", "User", "utcnow"]
