"""
Session Token Service
=====================

Issues and verifies signed, time-bound session tokens (HS256 JWT).
Tokens are stateless: validity is decided by signature and expiry only.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

import jwt

from letimail.config import AuthSettings
from letimail.entities import utcnow
from letimail.exceptions import (
    ExpiredTokenError,
    InvalidTokenError,
    MalformedTokenError,
)


class TokenService:
    """
    Token issuer and verifier.

    Example:
        >>> tokens = TokenService(secret="s3cret")
        >>> token = tokens.issue("user-1")
        >>> tokens.verify(token)
        'user-1'
    """

    def __init__(
        self,
        secret: str,
        ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self._ttl = ttl
        self._algorithm = algorithm
        self._clock = clock or utcnow

    @classmethod
    def from_settings(
        cls,
        settings: AuthSettings,
        clock: Optional[Callable[[], datetime]] = None
    ) -> TokenService:
        return cls(
            secret=settings.jwt_secret,
            ttl=timedelta(days=settings.token_ttl_days),
            algorithm=settings.jwt_algorithm,
            clock=clock,
        )

    def issue(self, user_id: str) -> str:
        """
        Issue a token for a user.

        Args:
            user_id: Opaque user identifier stored in the "sub" claim.

        Returns:
            Encoded token valid for the configured lifetime.
        """
        now = self._clock()
        payload = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> str:
        """
        Verify a token and return its user id.

        Raises:
            MalformedTokenError: If the token cannot be parsed.
            InvalidTokenError: If the signature does not match.
            ExpiredTokenError: If the current time is past the expiry.
        """
        if not token or token.count(".") != 2:
            raise MalformedTokenError()

        try:
            # Expiry is checked against the injected clock below
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidSignatureError as e:
            raise InvalidTokenError(cause=e) from e
        except jwt.DecodeError as e:
            raise MalformedTokenError(cause=e) from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(cause=e) from e

        user_id = payload.get("sub")
        exp = payload.get("exp")
        if not isinstance(user_id, str) or not user_id or not isinstance(exp, (int, float)):
            raise MalformedTokenError("Token is missing required claims")

        if self._clock().timestamp() > exp:
            raise ExpiredTokenError()

        return user_id
