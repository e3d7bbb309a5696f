"""Auth request and response models with validation."""

import re

from pydantic import BaseModel, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+$")


def _check_username(v: str) -> str:
    if not USERNAME_PATTERN.match(v):
        raise ValueError(
            "Username must contain only alphanumeric characters, "
            "dots, underscores, or hyphens"
        )
    return v


def _check_password(v: str) -> str:
    if not v.strip():
        raise ValueError("Password cannot be empty or whitespace only")
    return v


class LoginRequest(BaseModel):
    """Login credentials.

    Attributes:
        username: Registered username
        password: Plain-text password
    """

    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        """Ensure password is not empty or whitespace only."""
        return _check_password(v)


class RegisterRequest(BaseModel):
    """New account details.

    Attributes:
        username: Unique identifier (1-100 chars, alphanumeric + . _ -)
        password: Plain-text password (hashed before storage)
        first_name: Given name
        last_name: Family name
        phone: Contact phone number
    """

    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1, max_length=50)

    @field_validator("username")
    @classmethod
    def username_valid_chars(cls, v: str) -> str:
        """Ensure username contains only URL-safe characters."""
        return _check_username(v)

    @field_validator("password")
    @classmethod
    def password_hashable(cls, v: str) -> str:
        """Ensure password is non-blank and within bcrypt's 72-byte input limit."""
        _check_password(v)
        if len(v.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return v


class TokenResponse(BaseModel):
    """Signed session token issued on login or registration."""

    token: str
