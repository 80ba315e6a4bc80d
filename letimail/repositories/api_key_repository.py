"""
API Key Repository
==================

Data access for user-owned API keys. Only key hashes are stored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select, update

from letimail.db import Database
from letimail.entities import ApiKey


class ApiKeyRepository:
    """Repository for API key rows."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def create(
        self,
        user_id: str,
        name: str,
        key_prefix: str,
        key_hash: str,
        permissions: dict[str, Any],
    ) -> ApiKey:
        key = ApiKey(
            user_id=user_id,
            name=name,
            key_prefix=key_prefix,
            key_hash=key_hash,
            permissions=permissions,
            is_active=True,
        )
        with self._db.session("create_api_key") as session:
            session.add(key)
        return key

    def list_for_user(self, user_id: str) -> list[ApiKey]:
        with self._db.session("list_api_keys") as session:
            return list(session.execute(
                select(ApiKey)
                .where(ApiKey.user_id == user_id)
                .order_by(ApiKey.created_at.desc())
            ).scalars().all())

    def get_active_by_hash(self, key_hash: str) -> Optional[ApiKey]:
        with self._db.session("get_api_key") as session:
            return session.execute(
                select(ApiKey).where(ApiKey.key_hash == key_hash, ApiKey.is_active.is_(True))
            ).scalar_one_or_none()

    def touch_last_used(self, key_id: str, at: datetime) -> None:
        with self._db.session("touch_api_key") as session:
            session.execute(
                update(ApiKey).where(ApiKey.id == key_id).values(last_used_at=at)
            )

    def delete_for_user(self, user_id: str, key_id: str) -> bool:
        with self._db.session("delete_api_key") as session:
            result = session.execute(
                delete(ApiKey).where(ApiKey.id == key_id, ApiKey.user_id == user_id)
            )
            return result.rowcount == 1

    def count_active(self) -> int:
        with self._db.session("count_api_keys") as session:
            return session.execute(
                select(func.count()).select_from(ApiKey).where(ApiKey.is_active.is_(True))
            ).scalar_one()
