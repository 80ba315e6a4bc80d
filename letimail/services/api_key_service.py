"""
API Key Service
===============

Named, scoped API keys for programmatic access. The plaintext key is
shown once at creation; only its SHA-256 hash is stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from letimail.entities import ApiKey, User, utcnow
from letimail.exceptions import (
    ErrorContext,
    InsufficientScopeError,
    InvalidApiKeyError,
    NotFoundError,
    UserNotFoundError,
)
from letimail.logging_config import get_logger
from letimail.models import ApiKeyDTO, ApiKeyPermissions, ApiScope, CreateApiKeyRequest
from letimail.repositories.api_key_repository import ApiKeyRepository
from letimail.repositories.user_repository import UserRepository
from letimail.security import API_KEY_PREFIX, generate_api_key, hash_secret

logger = get_logger(__name__)

# "lm_" plus a few characters, enough to tell keys apart in a list
DISPLAY_PREFIX_LENGTH = len(API_KEY_PREFIX) + 6


@dataclass
class CreatedApiKey:
    key: str
    api_key: ApiKeyDTO


class ApiKeyService:
    """Create, list, revoke and authenticate API keys."""

    def __init__(
        self,
        keys: ApiKeyRepository,
        users: UserRepository,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self._keys = keys
        self._users = users
        self._clock = clock or utcnow

    def create(self, user: User, request: CreateApiKeyRequest) -> CreatedApiKey:
        raw_key = generate_api_key()
        permissions = ApiKeyPermissions(scopes=sorted(set(request.permissions), key=lambda s: s.value))
        key = self._keys.create(
            user_id=user.id,
            name=request.name,
            key_prefix=raw_key[:DISPLAY_PREFIX_LENGTH],
            key_hash=hash_secret(raw_key),
            permissions=permissions.model_dump(mode="json"),
        )
        logger.info("API key created", api_key_id=key.id, scopes=[s.value for s in permissions.scopes])
        return CreatedApiKey(key=raw_key, api_key=ApiKeyDTO.from_entity(key))

    def list_for_user(self, user: User) -> list[ApiKeyDTO]:
        return [ApiKeyDTO.from_entity(key) for key in self._keys.list_for_user(user.id)]

    def revoke(self, user: User, key_id: str) -> None:
        """
        Delete one of the caller's keys.

        Raises:
            NotFoundError: If the key does not exist or belongs to someone else.
        """
        if not self._keys.delete_for_user(user.id, key_id):
            raise NotFoundError("api_key", key_id, context=ErrorContext(operation="revoke_api_key"))
        logger.info("API key revoked", api_key_id=key_id)

    def authenticate(self, raw_key: str, scope: Optional[ApiScope] = None) -> tuple[ApiKey, User]:
        """
        Resolve a presented key to its owner.

        Raises:
            InvalidApiKeyError: If the key is unknown or inactive.
            UserNotFoundError: If the owner no longer exists.
            InsufficientScopeError: If the key lacks ``scope``.
        """
        if not raw_key.startswith(API_KEY_PREFIX):
            raise InvalidApiKeyError()

        key = self._keys.get_active_by_hash(hash_secret(raw_key))
        if key is None:
            raise InvalidApiKeyError()

        user = self._users.get_by_id(key.user_id)
        if user is None:
            raise UserNotFoundError(key.user_id)

        if scope is not None and not ApiKeyPermissions.model_validate(key.permissions or {}).allows(scope):
            raise InsufficientScopeError(scope.value)

        return key, user

    def touch(self, key: ApiKey) -> None:
        self._keys.touch_last_used(key.id, self._clock())
