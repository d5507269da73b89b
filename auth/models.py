"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
AuthService do the work; these only carry shape.

Layer rule: no imports from api/, core/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """Identity-facing profile of an account holder.

    id is None before the record is written to the database. The store assigns
    a uuid4 string on insert.

    email is duplicated into the Auth row so credentials can be looked up
    without touching the profile table.
    """

    email: str
    first_name: str
    last_name: str
    business_name: str | None = None
    country_code: str | None = None  # ISO 3166-1 alpha-2
    status: str = "active"  # "active" | "suspended"
    verified: bool = False
    role: str = "freelancer"
    id: str | None = None
    created_at: str | None = None


@dataclass
class Auth:
    """Credential record, one-to-one with User.

    password_hash is a bcrypt hash; the plaintext is never persisted.
    user is populated only by lookups that join the profile row
    (CredentialStore.get_auth_by_email).
    """

    user_id: str
    email: str
    password_hash: str
    id: int | None = None
    last_login_at: str | None = None
    user: User | None = None


@dataclass(frozen=True)
class TokenPair:
    """An access/refresh token pair as handed to the client and held in the session cache."""

    access_token: str
    refresh_token: str


@dataclass
class LoginResult:
    tokens: TokenPair
    user: User
