# homelead/services/security.py
"""
Password digests and tokens.

- bcrypt for every digest we write
- records migrated from the old store carry a bare SHA-256 hex digest; those
  still verify so existing customers can log in
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets

import bcrypt

logger = logging.getLogger("homelead.security")

_SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.
    """
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its stored digest.
    """
    if not plain_password or not hashed_password:
        return False
    if _SHA256_HEX.match(hashed_password):
        got = hashlib.sha256(plain_password.encode("utf-8")).hexdigest()
        return hmac.compare_digest(got, hashed_password)
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError as e:
        logger.warning("Password verification failed: %s", e)
        return False


def generate_token() -> str:
    return secrets.token_hex(16)


def generate_id(prefix: str = "") -> str:
    return f"{prefix}{secrets.token_hex(8)}"


def secrets_match(supplied: str | None, expected: str) -> bool:
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def short(token: str) -> str:
    """Token prefix safe for logs."""
    return f"{token[:8]}..." if token else "-"
