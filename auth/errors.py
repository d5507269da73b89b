"""
auth/errors.py -- Tagged error type for authentication outcomes.

Every expected failure of the auth core is an AuthError carrying an explicit
ErrorKind plus a human-readable message. Callers (the HTTP layer, tests)
match on error.kind, never on exception subclass identity. Anything that is
not an AuthError is an unexpected failure and propagates unchanged.

Token codec failures are normalized through translate_token_error(), the one
place where TokenFailure values become user-facing outcomes.

Layer rule: no imports from api/, core/, or cache/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    conflict = "conflict"
    unauthorized = "unauthorized"
    bad_request = "bad_request"
    not_found = "not_found"


class AuthError(Exception):
    """An expected auth outcome: a kind the caller can switch on plus a message."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"AuthError(kind={self.kind.value!r}, message={self.message!r})"


class TokenFailure(str, Enum):
    expired = "expired"
    invalid = "invalid"


class TokenError(Exception):
    """Raised by TokenCodec.verify(). failure tells expiry apart from everything else."""

    def __init__(self, failure: TokenFailure, detail: str = "") -> None:
        super().__init__(detail or failure.value)
        self.failure = failure


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

MSG_EMAIL_TAKEN = "User with this email already exists"
MSG_INVALID_CREDENTIALS = "Invalid credentials"
MSG_TOKEN_EXPIRED = "Token has expired"
MSG_ACCESS_TOKEN_EXPIRED = "Access token has expired"
MSG_INVALID_TOKEN = "Invalid token"
MSG_INVALID_TOKENS = "Invalid tokens"
MSG_INVALID_ACCESS_TOKEN = "Invalid access token"
MSG_AUTH_REQUIRED = "Authentication required"
MSG_SAME_PASSWORD = "Old and new password cannot be the same!"
MSG_WRONG_OLD_PASSWORD = "Old password is incorrect!"
MSG_USER_NOT_FOUND = "User not found!"


def translate_token_error(exc: TokenError, expired_message: str = MSG_TOKEN_EXPIRED) -> AuthError:
    """Map a codec failure onto the auth error taxonomy.

    expired_message differs per flow: the refresh flow reports "Token has
    expired", the request guard reports "Access token has expired". Every
    other verification failure collapses to "Invalid token".
    """
    if exc.failure is TokenFailure.expired:
        return AuthError(ErrorKind.unauthorized, expired_message)
    return AuthError(ErrorKind.unauthorized, MSG_INVALID_TOKEN)
