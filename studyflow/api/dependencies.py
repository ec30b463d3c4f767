"""
FastAPI Dependencies - Authentication and service wiring.

All dependencies return typed objects.
"""

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from studyflow.config import settings
from studyflow.db.repository import ProfileRepository
from studyflow.db.session import get_db
from studyflow.exceptions import NotAuthenticatedError
from studyflow.services.progression_service import ProgressionService

logger = get_logger(__name__)


@dataclass
class UserIdentity:
    """Authenticated user identity from JWT token."""

    user_id: str  # "sub" claim
    email: str | None = None
    name: str | None = None


# Bearer token scheme for JWT auth
bearer_scheme = HTTPBearer(auto_error=False)


def decode_user_token(token: str) -> UserIdentity:
    """
    Verify an HS256 access token and extract the user identity.

    Raises:
        NotAuthenticatedError: signature, expiry, audience or subject invalid
    """
    options = {"require": ["sub"]}
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            options={**options, "verify_aud": settings.jwt_audience is not None},
        )
    except jwt.ExpiredSignatureError as e:
        raise NotAuthenticatedError("token expired") from e
    except jwt.InvalidTokenError as e:
        raise NotAuthenticatedError(f"invalid token: {e}") from e

    user_id = str(claims.get("sub") or "").strip()
    if not user_id:
        raise NotAuthenticatedError("token has no subject")

    return UserIdentity(
        user_id=user_id,
        email=claims.get("email"),
        name=claims.get("name") or claims.get("full_name"),
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> UserIdentity:
    """
    FastAPI dependency to validate the bearer token from the Authorization header.

    Usage:
        @router.get("/v1/profile")
        async def get_profile(user: UserIdentity = Depends(get_current_user)):
            # user.user_id is the profile id
            pass

    Raises:
        HTTPException 401 if no token or invalid token
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return decode_user_token(credentials.credentials)
    except NotAuthenticatedError as exc:
        logger.info("auth_rejected", reason=exc.reason)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


async def get_progression_service(db: AsyncSession = Depends(get_db)) -> ProgressionService:
    """Progression service bound to a request-scoped database session."""
    return ProgressionService(ProfileRepository(db))
