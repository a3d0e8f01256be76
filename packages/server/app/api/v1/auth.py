"""
Authentication endpoints.

- Email/password registration & login
- Access/refresh token issue and rotation
- Logout (cookie clearing + access token revocation when Redis is configured)
- Password change and reset
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import jwt
import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    generate_csrf_token,
    get_current_user,
    revoke_jwt,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import AuthenticationError
from app.models.user import User
from app.services import users as user_service
from taskflow_shared.schemas.common import APIResponse
from taskflow_shared.schemas.users import (
    AuthTokens,
    ForgotPasswordRequest,
    LoginRequest,
    PasswordResetIssued,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdatePasswordRequest,
    UserProfile,
)

log = structlog.get_logger()
router = APIRouter()


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the access token and CSRF cookies on a response."""
    settings = get_settings()
    max_age = settings.access_token_expire_minutes * 60
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=settings.is_production,  # allow non-HTTPS outside production
        samesite="lax",
        path="/",
        max_age=max_age,
    )
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=settings.is_production,
        samesite="lax",
        path="/",
        max_age=max_age,
    )


def _issue_tokens(response: Response, user: User) -> AuthTokens:
    token, _jti = create_access_token(user.id)
    _set_session_cookies(response, token, generate_csrf_token())
    return AuthTokens(
        token=token,
        refresh_token=create_refresh_token(user.id),
        user=user_service.to_profile(user),
    )


# ---------------------------------------------------------------------------
# Registration & login
# ---------------------------------------------------------------------------


@router.post("/register", response_model=APIResponse[AuthTokens], status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password and start a session."""
    user = await user_service.register_user(session, body)
    return APIResponse(message="User registered successfully", data=_issue_tokens(response, user))


@router.post("/login", response_model=APIResponse[AuthTokens])
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password."""
    user = await user_service.authenticate(session, body.email, body.password)
    return APIResponse(message="Login successful", data=_issue_tokens(response, user))


# ---------------------------------------------------------------------------
# Session management
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=APIResponse[None])
async def logout(
    request: Request,
    response: Response,
    user: User = Depends(get_current_user),
):
    """Invalidate the current access token and clear the session cookies."""
    payload = request.state.token_payload
    jti = payload.get("jti")
    if jti:
        remaining = int(payload["exp"] - datetime.now(timezone.utc).timestamp())
        await revoke_jwt(jti, remaining)

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    log.info("auth.logout", user_id=str(user.id))
    return APIResponse(message="Logged out successfully")


@router.get("/me", response_model=APIResponse[UserProfile])
async def me(user: User = Depends(get_current_user)):
    return APIResponse(data=user_service.to_profile(user))


@router.post("/refresh", response_model=APIResponse[AuthTokens])
async def refresh(
    body: RefreshRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Exchange a refresh token for a new token pair."""
    try:
        payload = decode_refresh_token(body.refresh_token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise AuthenticationError("Invalid refresh token")

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid refresh token")

    return APIResponse(message="Token refreshed", data=_issue_tokens(response, user))


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


@router.put("/update-password", response_model=APIResponse[AuthTokens])
async def update_password(
    body: UpdatePasswordRequest,
    response: Response,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await user_service.change_password(session, user, body.current_password, body.new_password)
    return APIResponse(message="Password updated successfully", data=_issue_tokens(response, user))


@router.post("/forgot-password", response_model=APIResponse[PasswordResetIssued])
async def forgot_password(
    body: ForgotPasswordRequest,
    session: AsyncSession = Depends(get_session),
):
    raw = await user_service.start_password_reset(session, body.email)
    issued = PasswordResetIssued(reset_token=None if get_settings().is_production else raw)
    return APIResponse(message="Password reset email sent", data=issued)


@router.post("/reset-password/{reset_token}", response_model=APIResponse[AuthTokens])
async def reset_password(
    reset_token: str,
    body: ResetPasswordRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.complete_password_reset(session, reset_token, body.password)
    return APIResponse(message="Password reset successful", data=_issue_tokens(response, user))
