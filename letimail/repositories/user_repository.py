"""
User Repository
===============

Data access for user rows: credentials, plan, usage counters
and the JSON documents stored on the user.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from letimail.db import Database
from letimail.entities import User, utcnow
from letimail.exceptions import ErrorContext, ValidationError
from letimail.logging_config import get_logger
from letimail.models import Plan

logger = get_logger(__name__)


class UserRepository:
    """
    Repository for user rows.

    Example:
        >>> repo = UserRepository(database)
        >>> user = repo.create("alice@example.com", "Alice", password_hash)
        >>> repo.get_by_id(user.id).plan
        'free'
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    # ========================================================================
    # Reads
    # ========================================================================

    def get_by_id(self, user_id: str) -> Optional[User]:
        with self._db.session("get_user") as session:
            return session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        with self._db.session("get_user_by_email") as session:
            return session.execute(
                select(User).where(User.email == email)
            ).scalar_one_or_none()

    def exists_by_email(self, email: str) -> bool:
        with self._db.session("user_exists") as session:
            return session.execute(
                select(func.count()).select_from(User).where(User.email == email)
            ).scalar_one() > 0

    # ========================================================================
    # Writes
    # ========================================================================

    def create(self, email: str, name: str, password_hash: str, today: Optional[date] = None) -> User:
        """
        Insert a new free-plan user.

        Raises:
            ValidationError: If the email is already registered.
        """
        user = User(
            email=email,
            name=name,
            password_hash=password_hash,
            plan=Plan.FREE.value,
            emails_used=0,
            daily_emails_used=0,
            last_reset_date=today or utcnow().date(),
        )
        try:
            with self._db.session("create_user") as session:
                session.add(user)
        except IntegrityError as e:
            raise ValidationError(
                message="Email already registered",
                field="email",
                context=ErrorContext(operation="create_user"),
                cause=e
            ) from e

        logger.info("User created", created_user_id=user.id)
        return user

    def touch_last_login(self, user_id: str, at: datetime) -> None:
        with self._db.session("touch_last_login") as session:
            session.execute(
                update(User).where(User.id == user_id).values(last_login_at=at)
            )

    def consume_generation(
        self,
        user_id: str,
        today: date,
        free_limit: int,
        now: Optional[datetime] = None
    ) -> bool:
        """
        Count one generation in a single conditional UPDATE.

        The daily counter restarts at 1 when the stored reset date is not
        today. Free users are only updated while below the limit.

        Returns:
            True if a row was updated, False if the quota was already used up
            (or the user is gone).
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .where(or_(User.plan != Plan.FREE.value, User.emails_used < free_limit))
            .values(
                emails_used=User.emails_used + 1,
                daily_emails_used=case(
                    (User.last_reset_date == today, User.daily_emails_used + 1),
                    else_=1,
                ),
                last_reset_date=today,
                updated_at=now or utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        with self._db.session("consume_generation") as session:
            result = session.execute(stmt)
            return result.rowcount == 1

    def update_document(self, user_id: str, column: str, document: dict[str, Any]) -> bool:
        """
        Replace one of the JSON document columns.

        Args:
            user_id: Owner of the row.
            column: "preferences" or "tone_profile".
            document: Serialized, already validated document.
        """
        if column not in ("preferences", "tone_profile"):
            raise ValueError(f"Unknown document column: {column}")
        with self._db.session(f"update_{column}") as session:
            result = session.execute(
                update(User)
                .where(User.id == user_id)
                .values({column: document, "updated_at": utcnow()})
            )
            return result.rowcount == 1

    def delete(self, user_id: str) -> bool:
        """Delete a user; email history and API keys cascade."""
        with self._db.session("delete_user") as session:
            user = session.get(User, user_id)
            if user is None:
                return False
            session.delete(user)
        logger.info("User deleted", deleted_user_id=user_id)
        return True

    # ========================================================================
    # Aggregates
    # ========================================================================

    def count_by_plan(self) -> dict[str, int]:
        with self._db.session("count_users_by_plan") as session:
            rows = session.execute(
                select(User.plan, func.count()).group_by(User.plan)
            ).all()
        counts = {plan.value: 0 for plan in Plan}
        counts.update({plan: count for plan, count in rows})
        return counts

    def total_generations(self) -> int:
        with self._db.session("total_generations") as session:
            return session.execute(
                select(func.coalesce(func.sum(User.emails_used), 0))
            ).scalar_one()

