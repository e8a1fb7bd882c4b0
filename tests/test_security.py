"""
Tests for password hashing and tokens.
"""

from datetime import datetime, timedelta, timezone

import jwt

from config import settings
from security import (ACCESS, RESET, create_access_token, create_reset_token,
                      decode_token, hash_password, hash_token, verify_password)


def test_password_hash_roundtrip():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_against_garbage_hash():
    assert verify_password("secret123", "not-a-bcrypt-hash") is False


def test_access_token_claims():
    payload = decode_token(create_access_token("u1", "tester", "staff"))
    assert payload["sub"] == "u1"
    assert payload["role"] == "staff"
    assert payload["type"] == ACCESS


def test_token_type_is_enforced():
    token, expires_at = create_reset_token("u1")
    assert expires_at > datetime.now(timezone.utc)
    assert decode_token(token, RESET)["sub"] == "u1"
    assert decode_token(token, ACCESS) is None


def test_expired_and_tampered_tokens():
    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    expired = jwt.encode(
        {"sub": "u1", "type": ACCESS, "exp": past}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )
    assert decode_token(expired) is None
    assert decode_token(create_access_token("u1", "t", "staff") + "x") is None


def test_hash_token_is_stable():
    assert hash_token("abc") == hash_token("abc")
    assert hash_token("abc") != hash_token("abd")
