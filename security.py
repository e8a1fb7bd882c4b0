"""
Security utilities for authentication.

Provides password hashing and signed JWT access/reset tokens.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import bcrypt
import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from config import settings
from logging_config import get_logger

logger = get_logger(__name__)

ACCESS = "access"
RESET = "reset"


# ==================== PASSWORD HASHING ====================


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    salt = bcrypt.gensalt(rounds=settings.PASSWORD_HASH_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError as e:
        logger.error("password_verification_failed", error=str(e))
        return False


def hash_token(token: str) -> str:
    """SHA-256 of a token, for storing single-use tokens."""
    return hashlib.sha256(token.encode()).hexdigest()


# ==================== JWT TOKENS ====================


def _encode(user_id: str, token_type: str, expires_in: timedelta, claims: Optional[Dict[str, Any]] = None) -> Tuple[str, datetime]:
    now = datetime.now(timezone.utc)
    expire = now + expires_in
    payload = {"sub": user_id, "type": token_type, "iat": now, "exp": expire}
    if claims:
        payload.update(claims)
    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, expire


def create_access_token(user_id: str, username: str, role: str) -> str:
    token, expire = _encode(
        user_id,
        ACCESS,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        {"username": username, "role": role},
    )
    logger.debug("access_token_created", user_id=user_id, expires_at=expire.isoformat())
    return token


def create_reset_token(user_id: str) -> Tuple[str, datetime]:
    """
    Create a password reset token.

    Returns:
        Tuple of (token, expires_at)
    """
    return _encode(user_id, RESET, timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES))


def decode_token(token: str, token_type: str = ACCESS) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT.

    Returns:
        Decoded payload if valid and of the expected type, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        logger.debug("token_expired", token_type=token_type)
        return None
    except InvalidTokenError as e:
        logger.warning("token_invalid", token_type=token_type, error=str(e))
        return None

    if payload.get("type") != token_type:
        logger.warning("token_type_mismatch", expected=token_type, got=payload.get("type"))
        return None
    return payload
