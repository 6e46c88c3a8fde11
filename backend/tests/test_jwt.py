"""Access tokens used to identify the caller of the AI endpoints."""

from datetime import datetime, timezone, timedelta
from unittest.mock import patch

import pytest
from jose import JWTError, jwt

from app.core.auth import create_access_token, decode_token
from app.config import settings


def test_create_and_decode_token_roundtrip():
    """Access token carries the user id as a string subject, the email and an expiry."""
    token = create_access_token(user_id=42, email="u@example.com")
    assert isinstance(token, str)
    payload = decode_token(token)
    assert payload["sub"] == "42"
    assert payload["email"] == "u@example.com"
    assert "exp" in payload


def test_email_is_optional():
    """Tokens minted without an email omit the claim entirely."""
    payload = decode_token(create_access_token(user_id=7))
    assert payload["sub"] == "7"
    assert "email" not in payload


def test_decode_invalid_signature_raises():
    """A single flipped signature character is rejected."""
    token = create_access_token(user_id=1, email="a@b.com")
    # Tamper with the signature
    bad_token = token[:-1] + ("x" if token[-1] != "x" else "y")
    with pytest.raises(JWTError):
        decode_token(bad_token)


def test_decode_expired_token_raises():
    """Expired tokens fail decoding, which the API turns into a 401."""
    payload = {
        "sub": "1",
        "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(JWTError):
        decode_token(token)


def test_decode_wrong_key_raises():
    """Rotating the secret invalidates tokens signed with the old one."""
    token = create_access_token(user_id=1, email="a@b.com")
    with patch.object(settings, "secret_key", "other-secret"):
        with pytest.raises(JWTError):
            decode_token(token)
