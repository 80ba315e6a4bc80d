"""
OTP Repository
==============

Data access for email verification challenges.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import case, delete, update
from sqlalchemy.exc import IntegrityError

from letimail.db import Database
from letimail.entities import OTPChallenge, utcnow


class OTPRepository:
    """Repository for OTP challenges, keyed by email."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def get(self, email: str) -> Optional[OTPChallenge]:
        with self._db.session("get_otp") as session:
            return session.get(OTPChallenge, email)

    def upsert(self, email: str, code_hash: str, expires_at: datetime) -> OTPChallenge:
        """
        Store a fresh pending challenge, replacing any previous one.

        Attempts are reset to zero.
        """
        try:
            return self._upsert(email, code_hash, expires_at)
        except IntegrityError:
            # A concurrent request inserted the row first; overwrite it
            return self._upsert(email, code_hash, expires_at)

    def _upsert(self, email: str, code_hash: str, expires_at: datetime) -> OTPChallenge:
        with self._db.session("upsert_otp") as session:
            challenge = session.get(OTPChallenge, email)
            if challenge is None:
                challenge = OTPChallenge(email=email)
                session.add(challenge)
            challenge.code_hash = code_hash
            challenge.status = "pending"
            challenge.attempts = 0
            challenge.expires_at = expires_at
            challenge.created_at = utcnow()
        return challenge

    def record_failure(self, email: str, max_attempts: int) -> Optional[OTPChallenge]:
        """
        Increment the attempt counter in one statement.

        The challenge flips to "exhausted" on reaching max_attempts.

        Returns:
            The updated challenge, or None if it no longer exists.
        """
        with self._db.session("record_otp_failure") as session:
            session.execute(
                update(OTPChallenge)
                .where(OTPChallenge.email == email)
                .values(
                    attempts=OTPChallenge.attempts + 1,
                    status=case(
                        (OTPChallenge.attempts + 1 >= max_attempts, "exhausted"),
                        else_=OTPChallenge.status,
                    ),
                )
                .execution_options(synchronize_session=False)
            )
            return session.get(OTPChallenge, email, populate_existing=True)

    def mark_verified(self, email: str) -> None:
        with self._db.session("mark_otp_verified") as session:
            session.execute(
                update(OTPChallenge)
                .where(OTPChallenge.email == email)
                .values(status="verified")
            )

    def delete(self, email: str) -> None:
        with self._db.session("delete_otp") as session:
            session.execute(delete(OTPChallenge).where(OTPChallenge.email == email))
