"""Security utilities for authentication."""

import hashlib
import hmac
import secrets
from typing import Optional, Tuple

from fastapi import HTTPException, status


def _iterations() -> int:
    from ..config import get_config

    return get_config().app.password_hash_iterations


def hash_password(password: str, salt: Optional[bytes] = None) -> Tuple[str, str]:
    """
    Hash a password using PBKDF2-HMAC-SHA256.

    Args:
        password: The plain text password to hash
        salt: Optional salt bytes. If None, generates a secure random salt.

    Returns:
        tuple[str, str]: (salt_hex, hash_hex) for storage in database
    """
    if salt is None:
        salt = secrets.token_bytes(32)  # 256-bit salt

    password_hash = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt, _iterations()
    )

    return salt.hex(), password_hash.hex()


def verify_password(password: str, salt_hex: Optional[str], hash_hex: Optional[str]) -> bool:
    """
    Verify a password against stored salt and hash.

    Args:
        password: The plain text password to verify
        salt_hex: The hex-encoded salt from database
        hash_hex: The hex-encoded hash from database

    Returns:
        bool: True if password is valid, False otherwise
    """
    if not password or not salt_hex or not hash_hex:
        return False

    try:
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)

        computed_hash = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), salt, _iterations()
        )

        # Constant-time comparison
        return hmac.compare_digest(computed_hash, stored_hash)

    except (ValueError, TypeError):
        # Invalid hex encoding or other format errors
        return False


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def validate_bearer_token_format(token: str) -> None:
    """
    Reject obviously malformed bearer tokens before decoding them.

    Raises:
        HTTPException: If token format is invalid
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token cannot be empty",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # A JWT has exactly three dot-separated segments
    if token.count(".") != 2 or len(token) < 20:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format",
            headers={"WWW-Authenticate": "Bearer"},
        )
