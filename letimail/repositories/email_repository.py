"""
Email History Repository
========================

Data access for generated, improved and sent emails.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select

from letimail.db import Database
from letimail.entities import EmailRecord, utcnow
from letimail.models import EmailKind, EmailStatus


class EmailRepository:
    """
    Repository for email history rows.

    Every read is scoped to the owning user.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    def add(
        self,
        user_id: str,
        kind: EmailKind,
        body: str,
        status: EmailStatus = EmailStatus.DRAFT,
        subject: Optional[str] = None,
        recipient: Optional[str] = None,
        business: Optional[str] = None,
        context: Optional[str] = None,
        tone: Optional[str] = None,
        provider_message_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> EmailRecord:
        record = EmailRecord(
            user_id=user_id,
            kind=kind.value,
            status=status.value,
            body=body,
            subject=subject,
            recipient=recipient,
            business=business,
            context=context,
            tone=tone,
            provider_message_id=provider_message_id,
            created_at=created_at or utcnow(),
        )
        with self._db.session("add_email_record") as session:
            session.add(record)
        return record

    def list_for_user(self, user_id: str, page: int = 1, per_page: int = 20) -> tuple[list[EmailRecord], int]:
        """
        Page through a user's history, newest first.

        Returns:
            Tuple of (records on the page, total record count).
        """
        with self._db.session("list_email_records") as session:
            total = session.execute(
                select(func.count()).select_from(EmailRecord).where(EmailRecord.user_id == user_id)
            ).scalar_one()
            records = session.execute(
                select(EmailRecord)
                .where(EmailRecord.user_id == user_id)
                .order_by(EmailRecord.created_at.desc(), EmailRecord.id)
                .offset((page - 1) * per_page)
                .limit(per_page)
            ).scalars().all()
        return list(records), total

    def get_for_user(self, user_id: str, record_id: str) -> Optional[EmailRecord]:
        with self._db.session("get_email_record") as session:
            return session.execute(
                select(EmailRecord).where(
                    EmailRecord.id == record_id,
                    EmailRecord.user_id == user_id,
                )
            ).scalar_one_or_none()

    def count_for_user(self, user_id: str) -> int:
        with self._db.session("count_email_records") as session:
            return session.execute(
                select(func.count()).select_from(EmailRecord).where(EmailRecord.user_id == user_id)
            ).scalar_one()

    def count_by_status(self) -> dict[str, int]:
        with self._db.session("count_emails_by_status") as session:
            rows = session.execute(
                select(EmailRecord.status, func.count()).group_by(EmailRecord.status)
            ).all()
        counts = {status.value: 0 for status in EmailStatus}
        counts.update({status: count for status, count in rows})
        return counts
