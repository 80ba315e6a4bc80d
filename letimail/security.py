"""
Password and secret hashing helpers.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

import bcrypt

API_KEY_PREFIX = "lm_"


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Unparseable stored hash or oversized password
        return False


def hash_secret(secret: str) -> str:
    """SHA-256 hex digest for high-entropy secrets (API keys, OTP codes)."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def secrets_match(secret: str, expected_hash: str) -> bool:
    return hmac.compare_digest(hash_secret(secret), expected_hash)


def generate_numeric_code(length: int = 6) -> str:
    """Uniformly random zero-padded numeric code."""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_urlsafe(32)
