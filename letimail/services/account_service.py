"""
Account Service
===============

Per-user documents (preferences, tone profile), email history
and the admin overview.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from letimail.entities import User, utcnow
from letimail.exceptions import ErrorContext, NotFoundError, UserNotFoundError
from letimail.logging_config import get_logger
from letimail.models import EmailRecordDTO, HistoryQuery, Preferences, ToneProfile
from letimail.repositories.api_key_repository import ApiKeyRepository
from letimail.repositories.email_repository import EmailRepository
from letimail.repositories.user_repository import UserRepository

logger = get_logger(__name__)


class AccountService:
    """
    Reads and writes the data a signed-in user owns.

    Stored documents are validated on the way out too, so rows written
    by an older client still come back in the current shape.
    """

    def __init__(
        self,
        users: UserRepository,
        emails: EmailRepository,
        api_keys: ApiKeyRepository,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self._users = users
        self._emails = emails
        self._api_keys = api_keys
        self._clock = clock or utcnow

    # ========================================================================
    # Documents
    # ========================================================================

    def get_preferences(self, user: User) -> Preferences:
        return Preferences.model_validate(user.preferences or {})

    def update_preferences(self, user: User, payload: dict[str, Any]) -> Preferences:
        """
        Replace the user's preferences.

        Raises:
            pydantic.ValidationError: If the payload does not fit the schema.
        """
        preferences = Preferences.model_validate(payload)
        self._save(user, "preferences", preferences.model_dump(mode="json", by_alias=True))
        return preferences

    def get_tone_profile(self, user: User) -> ToneProfile:
        return ToneProfile.model_validate(user.tone_profile or {})

    def update_tone_profile(self, user: User, payload: dict[str, Any]) -> ToneProfile:
        """
        Replace the user's tone profile.

        The profile counts as trained once it holds at least one reference email.
        """
        profile = ToneProfile.model_validate(payload)
        profile.trained = bool(profile.emails)
        profile.last_updated = self._clock()
        self._save(user, "tone_profile", profile.model_dump(mode="json", by_alias=True))
        logger.info("Tone profile updated", reference_emails=len(profile.emails))
        return profile

    def _save(self, user: User, column: str, document: dict[str, Any]) -> None:
        if not self._users.update_document(user.id, column, document):
            raise UserNotFoundError(user.id, context=ErrorContext(operation=f"update_{column}"))
        setattr(user, column, document)

    # ========================================================================
    # History
    # ========================================================================

    def list_history(self, user: User, query: HistoryQuery) -> dict[str, Any]:
        records, total = self._emails.list_for_user(user.id, query.page, query.per_page)
        return {
            "items": [EmailRecordDTO.model_validate(r).model_dump(mode="json") for r in records],
            "page": query.page,
            "per_page": query.per_page,
            "total": total,
        }

    def get_history_item(self, user: User, record_id: str) -> EmailRecordDTO:
        """
        Raises:
            NotFoundError: If the record does not exist or belongs to someone else.
        """
        record = self._emails.get_for_user(user.id, record_id)
        if record is None:
            raise NotFoundError("email", record_id, context=ErrorContext(operation="get_history_item"))
        return EmailRecordDTO.model_validate(record)

    # ========================================================================
    # Admin
    # ========================================================================

    def stats(self) -> dict[str, Any]:
        users_by_plan = self._users.count_by_plan()
        return {
            "users": {
                "total": sum(users_by_plan.values()),
                "by_plan": users_by_plan,
            },
            "generations": self._users.total_generations(),
            "emails": self._emails.count_by_status(),
            "active_api_keys": self._api_keys.count_active(),
        }
