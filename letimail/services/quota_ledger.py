"""
Quota Ledger
============

Decides whether a user may generate one more email and records
consumption. Free-plan users are capped on their lifetime count;
premium users are unmetered. Consumption is recorded only after the
upstream generation succeeded, as one conditional UPDATE.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from letimail.entities import User, utcnow
from letimail.exceptions import ErrorContext, QuotaExceededError, UserNotFoundError
from letimail.logging_config import get_logger
from letimail.models import Plan, QuotaSnapshot
from letimail.repositories.user_repository import UserRepository

logger = get_logger(__name__)


class QuotaLedger:
    """
    Usage counters and the free-plan rule.

    Example:
        >>> ledger = QuotaLedger(users, free_limit=10)
        >>> ledger.ensure_can_generate(user)   # before calling the LLM
        >>> ledger.record_generation(user.id)  # after it succeeded
    """

    def __init__(
        self,
        users: UserRepository,
        free_limit: int = 10,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self._users = users
        self._free_limit = free_limit
        self._clock = clock or utcnow

    @property
    def free_limit(self) -> int:
        return self._free_limit

    def _today(self):
        return self._clock().date()

    def snapshot(self, user: User) -> QuotaSnapshot:
        """
        Current usage as the ledger sees it.

        A daily counter from an earlier date is reported as 0.
        """
        plan = Plan(user.plan)
        today = self._today()
        daily = user.daily_emails_used if user.last_reset_date == today else 0
        if plan == Plan.FREE:
            limit = self._free_limit
            remaining = max(limit - user.emails_used, 0)
        else:
            limit = None
            remaining = None
        return QuotaSnapshot(
            plan=plan,
            emails_used=user.emails_used,
            daily_emails_used=daily,
            limit=limit,
            remaining=remaining,
            last_reset_date=user.last_reset_date if user.last_reset_date == today else today,
        )

    def ensure_can_generate(self, user: User) -> None:
        """
        Pre-check before the upstream call. No side effects.

        Raises:
            QuotaExceededError: If a free user is at or over the limit.
        """
        if user.plan == Plan.FREE.value and user.emails_used >= self._free_limit:
            logger.info(
                "Generation refused, quota exhausted",
                emails_used=user.emails_used,
                limit=self._free_limit
            )
            raise QuotaExceededError(
                limit=self._free_limit,
                context=ErrorContext(operation="ensure_can_generate", resource_id=user.id, resource_type="user")
            )

    def record_generation(self, user_id: str) -> QuotaSnapshot:
        """
        Count one successful generation.

        Reset of the daily counter, the limit check and both increments
        happen in one statement, so concurrent requests cannot push a
        free user past the limit.

        Raises:
            QuotaExceededError: If a concurrent request used the last unit.
            UserNotFoundError: If the user was deleted meanwhile.
        """
        now = self._clock()
        consumed = self._users.consume_generation(
            user_id,
            today=now.date(),
            free_limit=self._free_limit,
            now=now,
        )
        user = self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        if not consumed:
            logger.warning("Quota consumed concurrently, generation discarded", limit=self._free_limit)
            raise QuotaExceededError(
                limit=self._free_limit,
                context=ErrorContext(operation="record_generation", resource_id=user_id, resource_type="user")
            )
        snapshot = self.snapshot(user)
        logger.info(
            "Generation recorded",
            emails_used=snapshot.emails_used,
            daily_emails_used=snapshot.daily_emails_used,
            plan=snapshot.plan.value
        )
        return snapshot
