"""User, profile and authentication schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, UUID4

from .common import UserRole


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------

class NotificationPreferences(BaseModel):
    email: bool = True
    push: bool = True
    task_updates: bool = True
    mentions: bool = True


class UserPreferences(BaseModel):
    theme: Theme = Theme.LIGHT
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)
    timezone: str = "UTC"


class NotificationPreferencesUpdate(BaseModel):
    email: Optional[bool] = None
    push: Optional[bool] = None
    task_updates: Optional[bool] = None
    mentions: Optional[bool] = None


class PreferencesUpdate(BaseModel):
    theme: Optional[Theme] = None
    notifications: Optional[NotificationPreferencesUpdate] = None
    timezone: Optional[str] = Field(default=None, min_length=1, max_length=64)


# ---------------------------------------------------------------------------
# Auth requests
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=6)


class UpdatePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    avatar: Optional[str] = Field(default=None, pattern=r"^https?://\S+$")


class UserSummary(BaseModel):
    """Compact user reference embedded in other payloads."""
    id: UUID4
    name: str
    email: str
    avatar: Optional[str] = None

    model_config = {"from_attributes": True}


class UserProfile(BaseModel):
    id: UUID4
    name: str
    email: str
    avatar: Optional[str] = None
    role: UserRole
    is_active: bool
    preferences: UserPreferences
    last_login: Optional[datetime] = None
    created_at: datetime


class AuthTokens(BaseModel):
    token: str
    refresh_token: str
    user: UserProfile


class UserStats(BaseModel):
    total_assigned: int
    completed_assigned: int
    overdue_assigned: int
    total_created: int
    completed_created: int
    workspaces_count: int
    assigned_completion_rate: int
    created_completion_rate: int


class PasswordResetIssued(BaseModel):
    # only populated outside production; otherwise the token goes out by email
    reset_token: Optional[str] = None
