"""Identity gateway request/response models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class IdentityAction(str, Enum):
    """Actions forwarded to the identity provider. Closed set."""

    LOGIN = "login"
    SIGNUP = "signup"
    RESET_PASSWORD = "reset_password"
    VERIFY_EMAIL = "verify_email"


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=256)


class SignupRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=8, max_length=256)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class VerifyEmailRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    token: str = Field(min_length=1, max_length=256)


class AuthSession(BaseModel):
    """Session issued by the identity provider. Only essential fields."""

    access_token: str
    refresh_token: str
    expires_at: datetime | None = None
    user_id: UUID
    email: EmailStr


class MessageResponse(BaseModel):
    message: str
