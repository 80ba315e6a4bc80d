"""
Auth Gate
=========

Authenticates inbound requests before protected views run.

Session tokens travel as ``Authorization: Bearer <token>``; API keys
as ``X-API-Key``. The resolved user is attached to ``flask.g``.
"""

from __future__ import annotations

from datetime import datetime
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from flask import current_app, g, request

from letimail.entities import User, utcnow
from letimail.exceptions import ErrorContext, ForbiddenError, MissingCredentialError, StoreError, UserNotFoundError
from letimail.logging_config import get_logger, set_user_id
from letimail.models import ApiScope
from letimail.repositories.user_repository import UserRepository
from letimail.services.api_key_service import ApiKeyService
from letimail.services.token_service import TokenService

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

API_KEY_HEADER = "X-API-Key"

# Tokens some browser clients send when nothing is stored
_EMPTY_TOKENS = frozenset({"null", "undefined"})


class AuthGate:
    """
    Resolves credentials to users.

    Example:
        >>> gate = AuthGate(tokens, users, api_keys, admin_emails=["ops@letimail.com"])
        >>> user = gate.authenticate_session("Bearer eyJ...")
    """

    def __init__(
        self,
        tokens: TokenService,
        users: UserRepository,
        api_keys: ApiKeyService,
        admin_emails: Optional[list[str]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self._tokens = tokens
        self._users = users
        self._api_keys = api_keys
        self._admin_emails = {email.lower() for email in (admin_emails or [])}
        self._clock = clock or utcnow

    @staticmethod
    def extract_bearer(header: Optional[str]) -> str:
        """
        Pull the token out of an Authorization header.

        Raises:
            MissingCredentialError: If the header is absent or not a bearer credential.
        """
        if not header:
            raise MissingCredentialError()
        scheme, _, token = header.strip().partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token or token in _EMPTY_TOKENS:
            raise MissingCredentialError()
        return token

    def authenticate_session(self, header: Optional[str]) -> User:
        """
        Resolve a bearer header to a user.

        Raises:
            MissingCredentialError: If no token was sent.
            AuthError: If the token is invalid, expired or malformed (401).
            UserNotFoundError: If the token is valid but the account is gone (403).
        """
        user_id = self._tokens.verify(self.extract_bearer(header))
        user = self._users.get_by_id(user_id)
        if user is None:
            logger.info("Token for a deleted account", token_user_id=user_id)
            raise UserNotFoundError(user_id, context=ErrorContext(operation="authenticate_session"))

        now = self._clock()
        try:
            self._users.touch_last_login(user.id, now)
            user.last_login_at = now
        except StoreError as e:
            logger.warning("Could not record last login", error=str(e))
        return user

    def authenticate_api_key(self, raw_key: str, scope: Optional[ApiScope] = None) -> User:
        """
        Resolve an API key to its owner and check its scope.

        Raises:
            InvalidApiKeyError, UserNotFoundError, InsufficientScopeError
        """
        key, user = self._api_keys.authenticate(raw_key.strip(), scope)
        try:
            self._api_keys.touch(key)
        except StoreError as e:
            logger.warning("Could not record API key use", error=str(e))
        return user

    def is_admin(self, user: User) -> bool:
        return user.email.lower() in self._admin_emails


def _gate() -> AuthGate:
    return current_app.extensions["letimail"].gate


def _attach(user: User, method: str) -> None:
    g.current_user = user
    g.auth_method = method
    set_user_id(user.id)


def current_user() -> User:
    """User attached by one of the decorators below."""
    return g.current_user


def require_session(view: F) -> F:
    """Allow only requests with a valid session token."""

    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        user = _gate().authenticate_session(request.headers.get("Authorization"))
        _attach(user, "session")
        return view(*args, **kwargs)

    return wrapper  # type: ignore


def require_user(scope: ApiScope) -> Callable[[F], F]:
    """
    Allow a session token or an API key carrying ``scope``.

    An API key header takes precedence when both are present.
    """

    def decorator(view: F) -> F:
        @wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            gate = _gate()
            raw_key = request.headers.get(API_KEY_HEADER)
            if raw_key:
                _attach(gate.authenticate_api_key(raw_key, scope), "api_key")
            else:
                _attach(gate.authenticate_session(request.headers.get("Authorization")), "session")
            return view(*args, **kwargs)

        return wrapper  # type: ignore

    return decorator


def require_admin(view: F) -> F:
    """Allow only session users on the admin allow-list."""

    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        gate = _gate()
        user = gate.authenticate_session(request.headers.get("Authorization"))
        if not gate.is_admin(user):
            logger.warning("Admin route refused")
            raise ForbiddenError("Admin access required", context=ErrorContext(operation="require_admin"))
        _attach(user, "session")
        return view(*args, **kwargs)

    return wrapper  # type: ignore
