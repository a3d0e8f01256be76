"""
Authentication for TaskFlow.

Supports:
- Email/password credentials hashed with bcrypt
- JWT access tokens (Bearer header or cookie) and refresh tokens
- Optional Redis revocation list for logged-out access tokens
- Password reset tokens (only the sha256 digest is stored)
"""

from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import AuthenticationError
from app.core.redis import get_redis
from app.models.user import User

log = structlog.get_logger()

SESSION_COOKIE = "tf_token"
CSRF_COOKIE = "tf_csrf"

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_access_token(user_id: uuid.UUID, *, expires_delta: timedelta | None = None) -> tuple[str, str]:
    """Create a signed access token. Returns (token, jti)."""
    settings = get_settings()
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, jti


def create_refresh_token(user_id: uuid.UUID) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "refresh",
        "iat": now,
        "exp": now + timedelta(days=settings.refresh_token_expire_days),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.jwt_refresh_secret, algorithm=settings.jwt_algorithm)


def _decode(token: str, secret: str, expected_type: str) -> dict:
    settings = get_settings()
    payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected a {expected_type} token")
    return payload


def decode_access_token(token: str) -> dict:
    """Decode and verify an access token. Raises jwt.PyJWTError on failure."""
    return _decode(token, get_settings().jwt_secret, "access")


def decode_refresh_token(token: str) -> dict:
    """Decode and verify a refresh token. Raises jwt.PyJWTError on failure."""
    return _decode(token, get_settings().jwt_refresh_secret, "refresh")


# ---------------------------------------------------------------------------
# JWT Revocation (Redis, when configured)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int) -> None:
    """Add a JWT ID to the revocation list. No-op without Redis."""
    redis = await get_redis()
    if redis is None:
        return
    await redis.setex(f"jwt:revoked:{jti}", max(ttl_seconds, 1), "1")


async def is_jwt_revoked(jti: str) -> bool:
    redis = await get_redis()
    if redis is None:
        return False
    return await redis.exists(f"jwt:revoked:{jti}") > 0


# ---------------------------------------------------------------------------
# CSRF / reset tokens
# ---------------------------------------------------------------------------

def generate_csrf_token() -> str:
    """Generate a random CSRF token."""
    return secrets.token_urlsafe(32)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def generate_reset_token() -> tuple[str, str]:
    """Returns (raw token for the email link, digest to store)."""
    raw = secrets.token_hex(20)
    return raw, hash_reset_token(raw)


# ---------------------------------------------------------------------------
# Authentication dependency
# ---------------------------------------------------------------------------

def extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    """Bearer header wins over the session cookie."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Depends(api_key_header),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Main authentication dependency. Resolves the caller from the access token."""
    token = extract_token(request, authorization)
    if not token:
        raise AuthenticationError("Not authorized to access this route")

    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError:
        raise AuthenticationError("Not authorized to access this route")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise AuthenticationError("Session has been revoked")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise AuthenticationError("Not authorized to access this route")

    user = await session.get(User, user_id)
    if user is None:
        raise AuthenticationError("No user found with this token")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    request.state.user = user
    request.state.token_payload = payload
    return user


async def get_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()
