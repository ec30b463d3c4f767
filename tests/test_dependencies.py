"""
Tests for FastAPI dependencies (JWT authentication).
"""

import time

import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from studyflow.api.dependencies import decode_user_token, get_current_user
from studyflow.config import settings
from studyflow.exceptions import NotAuthenticatedError


def make_token(claims: dict, secret: str | None = None) -> str:
    return jwt.encode(claims, secret or settings.jwt_secret, algorithm="HS256")


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestDecodeUserToken:
    """Tests for decode_user_token."""

    def test_valid_token(self):
        """sub, email and name are extracted."""
        token = make_token({"sub": "user-1", "email": "a@b.c", "name": "Ada"})

        identity = decode_user_token(token)

        assert identity.user_id == "user-1"
        assert identity.email == "a@b.c"
        assert identity.name == "Ada"

    def test_wrong_secret(self):
        """Tokens signed with another key are rejected."""
        with pytest.raises(NotAuthenticatedError):
            decode_user_token(
                make_token({"sub": "user-1"}, secret="another-secret-key-32-chars-long!")
            )

    def test_expired(self):
        """Expired tokens are rejected."""
        token = make_token({"sub": "user-1", "exp": int(time.time()) - 60})
        with pytest.raises(NotAuthenticatedError, match="expired"):
            decode_user_token(token)

    def test_missing_subject(self):
        """Tokens without sub are rejected."""
        with pytest.raises(NotAuthenticatedError):
            decode_user_token(make_token({"email": "a@b.c"}))

    def test_garbage(self):
        """Malformed tokens are rejected."""
        with pytest.raises(NotAuthenticatedError):
            decode_user_token("not-a-jwt")


class TestGetCurrentUser:
    """Tests for get_current_user."""

    async def test_no_credentials(self):
        """Missing Authorization header is a 401."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    async def test_invalid_token(self):
        """Bad tokens are a 401."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=bearer("nope"))

        assert exc_info.value.status_code == 401

    async def test_valid_token(self):
        """Good tokens yield the identity."""
        identity = await get_current_user(credentials=bearer(make_token({"sub": "user-9"})))
        assert identity.user_id == "user-9"
