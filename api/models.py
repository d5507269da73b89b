"""
API request and response models for authcore REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format is camelCase (accessToken, firstName, ...). Every model uses the
to_camel alias generator; populate_by_name lets Python code build them with
snake_case keyword arguments.

Shape checks live here, not in the auth core: a malformed email, a weak
password or a refresh payload that is not JWT-shaped is rejected with 400
before any service call.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import TokenPair, User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
# Three base64url segments: header.payload.signature
JWT_PATTERN = r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$"
COUNTRY_CODE_PATTERN = r"^[A-Z]{2}$"

# bcrypt only reads the first 72 bytes of a password.
_PASSWORD_MAX_LENGTH = 64
_STRONG_PASSWORD_MIN_LENGTH = 8


def _check_strong_password(value: str) -> str:
    """Require 8+ chars with at least one lowercase, uppercase, digit and symbol."""
    if (
        len(value) < _STRONG_PASSWORD_MIN_LENGTH
        or not re.search(r"[a-z]", value)
        or not re.search(r"[A-Z]", value)
        or not re.search(r"\d", value)
        or not re.search(r"[^A-Za-z0-9]", value)
    ):
        raise ValueError("password is not strong enough")
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(_CamelModel):
    """Request body for POST /auth/signup."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    business_name: Optional[str] = Field(default=None, max_length=50)
    country_code: Optional[str] = Field(default=None, pattern=COUNTRY_CODE_PATTERN)
    password: str = Field(max_length=_PASSWORD_MAX_LENGTH)

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_strong_password(value)


class LoginRequest(_CamelModel):
    """Request body for POST /auth/login."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX_LENGTH)


class RefreshTokensRequest(_CamelModel):
    """Request body for POST /auth/tokens-refresh. Both tokens must be JWT-shaped."""

    access_token: str = Field(pattern=JWT_PATTERN)
    refresh_token: str = Field(pattern=JWT_PATTERN)


class PasswordResetRequest(_CamelModel):
    """Request body for PATCH /auth/password-reset."""

    old_password: str = Field(max_length=_PASSWORD_MAX_LENGTH)
    new_password: str = Field(max_length=_PASSWORD_MAX_LENGTH)

    @field_validator("old_password", "new_password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_strong_password(value)


class ProfileUpdateRequest(_CamelModel):
    """Request body for PATCH /users/me.

    Omitted fields are left unchanged. An explicit null clears businessName or
    countryCode; firstName and lastName cannot be null.
    """

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    business_name: Optional[str] = Field(default=None, max_length=50)
    country_code: Optional[str] = Field(default=None, pattern=COUNTRY_CODE_PATTERN)

    @field_validator("first_name", "last_name")
    @classmethod
    def name_not_null(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("must not be null")
        return value

    def changes(self) -> dict:
        """The fields the client actually sent, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    """Public view of a user. Never carries credential data."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: str
    last_name: str
    business_name: Optional[str]
    country_code: Optional[str]
    status: str
    verified: bool
    role: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Factory Method: the domain -> transport mapping lives with the transport model."""
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            business_name=user.business_name,
            country_code=user.country_code,
            status=user.status,
            verified=user.verified,
            role=user.role,
            created_at=user.created_at or "",
        )


class TokenPairResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(access_token=pair.access_token, refresh_token=pair.refresh_token)


class LoginResponse(_CamelModel):
    """Response for POST /auth/login."""

    model_config = ConfigDict(frozen=True)

    tokens: TokenPairResponse
    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
