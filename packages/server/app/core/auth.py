"""
Session validation for Trackline.

Sessions are issued by the external auth provider as signed JWTs. This module
only reads them:
- Token from the ``tl_session`` cookie (browsers) or ``Authorization: Bearer`` (API clients)
- JWT signature/expiry check and Redis revocation list
- Resolution of the token subject to a non-deleted user, exposed as an Identity
- Session store or user lookup failures surface as SessionLookupFailed (500)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import SessionLookupFailed, Unauthenticated
from app.core.redis import get_redis
from app.models.user import User
from trackline_shared.schemas.users import Identity

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "tl_session"
DEFAULT_SESSION_MINUTES = 60 * 24 * 7

bearer_header = APIKeyHeader(name="Authorization", auto_error=False)


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed session token. Returns (token, jti).

    Production tokens come from the auth provider; this is used by the seed
    script and tests, which share the signing key.
    """
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=DEFAULT_SESSION_MINUTES))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int = 3600) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    await redis.setex(f"jwt:revoked:{jti}", ttl_seconds, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


# ---------------------------------------------------------------------------
# Identity resolution
# ---------------------------------------------------------------------------

def extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    """Bearer header wins over the session cookie."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE)


async def resolve_identity(token: str, session: AsyncSession) -> Optional[Identity]:
    """Map a session token to an Identity, or None if it does not authenticate."""
    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        log.info("auth.invalid_token")
        return None

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        log.info("auth.revoked_token", jti=jti)
        return None

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        return None

    result = await session.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    )
    user = result.scalar_one_or_none()
    if not user:
        log.info("auth.unknown_user", user_id=str(user_id))
        return None

    return Identity(id=user.id, name=user.name, email=user.email, image=user.image)


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

async def get_optional_identity(
    request: Request,
    authorization: Optional[str] = Depends(bearer_header),
    session: AsyncSession = Depends(get_session),
) -> Optional[Identity]:
    """Identity for the request, or None when there is no valid session."""
    token = extract_token(request, authorization)
    if not token:
        return None
    try:
        identity = await resolve_identity(token, session)
    except (RedisError, SQLAlchemyError) as exc:
        log.error("auth.lookup_failed", error=str(exc), error_type=type(exc).__name__)
        raise SessionLookupFailed() from exc
    if identity:
        request.state.identity = identity
    return identity


async def require_identity(
    identity: Optional[Identity] = Depends(get_optional_identity),
) -> Identity:
    """Any authenticated user can access this endpoint."""
    if identity is None:
        raise Unauthenticated()
    return identity
