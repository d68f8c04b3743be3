"""
dineAR Backend — Authentication Schemas
========================================

What:  Request rules and response models for /auth endpoints.
Why:   Request models are the declarative rule sets the validator runs;
       response models guarantee password_hash can never be serialized.

Rules:
    signup.email     required, valid format, max 255, trimmed + lower-cased
    signup.password  8-128 chars, at least one letter and one digit
    login.email      required, valid format (same normalization)
    login.password   required, max 128 (format not checked: old passwords must still work)
"""

import re
import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_EMAIL_LENGTH = 255
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128


def normalize_email(value: str) -> str:
    """Trim, check format and lower-case an email address."""
    email = value.strip()
    if len(email) > MAX_EMAIL_LENGTH:
        raise ValueError("Email must be less than 255 characters")
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Please provide a valid email address")
    return email.lower()


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SignupRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not MIN_PASSWORD_LENGTH <= len(v) <= MAX_PASSWORD_LENGTH:
            raise ValueError("Password must be between 8 and 128 characters")
        if not (re.search(r"[A-Za-z]", v) and re.search(r"\d", v)):
            raise ValueError("Password must contain at least one letter and one number")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        if len(v) > MAX_PASSWORD_LENGTH:
            raise ValueError("Invalid password")
        return v


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserPublic(BaseModel):
    """The only view of a User that leaves the service layer."""
    id: uuid.UUID = Field(description="User identifier")
    email: str = Field(description="Lower-cased login email")
    created_at: datetime = Field(description="Signup time (UTC)")

    model_config = {"from_attributes": True}


class AuthData(BaseModel):
    user: UserPublic
    token: str = Field(description="Signed bearer token; send as `Authorization: Bearer <token>`")


class AuthResponse(BaseModel):
    """Returned by signup (201) and login (200)."""
    success: bool = Field(default=True)
    data: AuthData


class UserData(BaseModel):
    user: UserPublic


class UserResponse(BaseModel):
    """Returned by GET /auth/me."""
    success: bool = Field(default=True)
    data: UserData
