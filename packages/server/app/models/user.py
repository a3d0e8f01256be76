"""User model."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from taskflow_shared.schemas.users import UserPreferences

from .base import JSONType, TimestampMixin, UUIDMixin


def _default_preferences() -> dict:
    return UserPreferences().model_dump(mode="json")


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    name: str = Field(nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)  # stored lower-case
    password_hash: str = Field(nullable=False)  # bcrypt
    avatar: Optional[str] = None
    role: str = Field(default="user", nullable=False)  # user | admin
    is_active: bool = Field(default=True, nullable=False)
    preferences: dict = Field(default_factory=_default_preferences, sa_type=JSONType, nullable=False)
    last_login: Optional[datetime] = Field(default=None, sa_type=sa.DateTime())
    # sha256 of the emailed reset token, never the token itself
    reset_password_token: Optional[str] = Field(default=None, index=True)
    reset_password_expire: Optional[datetime] = Field(default=None, sa_type=sa.DateTime())
