"""
auth/service.py -- Auth core: signup, login, token rotation, logout, password reset.

AuthService orchestrates the credential store, the password hasher, the token
codec and the session cache. All four are injected through the constructor;
nothing here reaches for a module-level singleton, so tests can hand in an
in-memory session cache with a fake clock.

Session model:
  The session cache holds exactly one token pair per user id. Login writes it,
  refresh swaps it, logout deletes it. A token that verifies cryptographically
  but is not the cached one for its subject is rejected, so deleting the entry
  revokes both tokens immediately.

Refresh rotation:
  The submitted pair must match the cached pair byte-for-byte, and the swap to
  the new pair is a single replace_if_equals() on the cache. A pair can
  therefore be exchanged at most once, even under concurrent refreshes, and an
  old access token cannot be combined with a newer refresh token.

Errors:
  Expected failures raise AuthError with an ErrorKind. Anything else (database
  down, programming errors) propagates unchanged.

Layer rule: no imports from api/. cache/ is imported for the SessionCache type
only.
"""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    MSG_ACCESS_TOKEN_EXPIRED,
    MSG_EMAIL_TAKEN,
    MSG_INVALID_ACCESS_TOKEN,
    MSG_INVALID_CREDENTIALS,
    MSG_INVALID_TOKENS,
    MSG_SAME_PASSWORD,
    MSG_TOKEN_EXPIRED,
    MSG_USER_NOT_FOUND,
    MSG_WRONG_OLD_PASSWORD,
    AuthError,
    ErrorKind,
    TokenError,
    translate_token_error,
)
from auth.models import LoginResult, TokenPair, User

if TYPE_CHECKING:
    from auth.passwords import PasswordHasher
    from auth.store import CredentialStore
    from auth.tokens import TokenCodec
    from cache.store import SessionCache

logger = logging.getLogger("authcore.auth")

MSG_PASSWORD_RESET = "Password reset successful"
MSG_LOGGED_OUT = "Logged out successfully"


class AuthService:
    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        codec: TokenCodec,
        sessions: SessionCache,
        default_role: str = "freelancer",
        revoke_sessions_on_password_reset: bool = False,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.codec = codec
        self.sessions = sessions
        self.default_role = default_role
        self.revoke_sessions_on_password_reset = revoke_sessions_on_password_reset

    @property
    def session_ttl_ms(self) -> int:
        """Cache TTL for a token pair: the refresh token lifetime, in milliseconds."""
        return self.codec.refresh_ttl_seconds * 1000

    # ------------------------------------------------------------------
    # Signup / login
    # ------------------------------------------------------------------

    def signup(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        business_name: str | None = None,
        country_code: str | None = None,
    ) -> User:
        """Create a user and its credential record. Does not log the user in.

        Raises AuthError(conflict) if the email is already registered.
        """
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            business_name=business_name,
            country_code=country_code,
            role=self.default_role,
        )
        password_hash = self.hasher.hash(password)
        try:
            created = self.store.create_user_with_auth(user, password_hash)
        except IntegrityError as exc:
            raise AuthError(ErrorKind.conflict, MSG_EMAIL_TAKEN) from exc
        logger.info("User %s signed up", created.id)
        return created

    def login(self, email: str, password: str) -> LoginResult:
        """Verify credentials, open a session and return its token pair.

        Unknown email and wrong password produce the same error, and both paths
        run one bcrypt verify so timing does not tell them apart.
        """
        auth = self.store.get_auth_by_email(email)
        if auth is None or auth.user is None:
            self.hasher.verify(password, self.hasher.dummy_hash)
            logger.warning("Failed login: unknown email")
            raise AuthError(ErrorKind.unauthorized, MSG_INVALID_CREDENTIALS)
        if not self.hasher.verify(password, auth.password_hash):
            logger.warning("Failed login for user %s: bad password", auth.user_id)
            raise AuthError(ErrorKind.unauthorized, MSG_INVALID_CREDENTIALS)

        user = auth.user
        tokens = self.generate_tokens(user.id, auth.email, user.role)
        self.sessions.set(user.id, tokens, self.session_ttl_ms)
        self.store.update_last_login(auth.id)
        logger.info("User %s logged in", user.id)
        return LoginResult(tokens=tokens, user=user)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def generate_tokens(self, user_id: str, email: str, role: str) -> TokenPair:
        """Mint a fresh pair. Caching it is the caller's job."""
        return self.codec.issue_pair(user_id, email, role)

    def refresh_tokens(self, access_token: str, refresh_token: str) -> TokenPair:
        """Exchange the current pair for a new one. Each pair can be exchanged once.

        Order of checks:
          1. refresh token must verify with the refresh secret
             (expired -> "Token has expired", otherwise "Invalid token");
          2. the cached pair for its subject must exist and equal the submitted
             pair exactly, and is swapped for the new pair in the same atomic
             step ("Invalid tokens" otherwise).
        """
        try:
            claims = self.codec.verify_refresh(refresh_token)
        except TokenError as exc:
            raise translate_token_error(exc, MSG_TOKEN_EXPIRED) from exc

        user_id = claims["sub"]
        submitted = TokenPair(access_token=access_token, refresh_token=refresh_token)
        new_tokens = self.generate_tokens(user_id, claims.get("email", ""), claims.get("role", self.default_role))
        if not self.sessions.replace_if_equals(user_id, submitted, new_tokens, self.session_ttl_ms):
            logger.warning("Rejected token refresh for user %s: pair is not the active session", user_id)
            raise AuthError(ErrorKind.unauthorized, MSG_INVALID_TOKENS)
        logger.info("Rotated tokens for user %s", user_id)
        return new_tokens

    def authenticate(self, access_token: str) -> dict:
        """Resolve a presented access token to its claims, or raise AuthError.

        The token must verify with the access secret and must be the access
        token of the user's active session. Revocation (logout, rotation,
        cache expiry) therefore takes effect on the very next request.
        """
        try:
            claims = self.codec.verify_access(access_token)
        except TokenError as exc:
            raise translate_token_error(exc, MSG_ACCESS_TOKEN_EXPIRED) from exc

        cached = self.sessions.get(claims["sub"])
        if cached is None or not hmac.compare_digest(cached.access_token.encode(), access_token.encode()):
            raise AuthError(ErrorKind.unauthorized, MSG_INVALID_ACCESS_TOKEN)
        return claims

    # ------------------------------------------------------------------
    # Session / credential maintenance
    # ------------------------------------------------------------------

    def logout(self, user_id: str) -> str:
        """End the user's session. Idempotent."""
        self.sessions.delete(user_id)
        logger.info("User %s logged out", user_id)
        return MSG_LOGGED_OUT

    def reset_password(self, user_id: str, old_password: str, new_password: str) -> str:
        """Replace the user's password after checking the old one.

        The active session is kept unless revoke_sessions_on_password_reset is
        enabled, in which case the session entry is deleted as well.
        """
        if old_password == new_password:
            raise AuthError(ErrorKind.bad_request, MSG_SAME_PASSWORD)
        auth = self.store.get_auth_by_user_id(user_id)
        if auth is None:
            raise AuthError(ErrorKind.not_found, MSG_USER_NOT_FOUND)
        if not self.hasher.verify(old_password, auth.password_hash):
            raise AuthError(ErrorKind.bad_request, MSG_WRONG_OLD_PASSWORD)

        self.store.update_password(user_id, self.hasher.hash(new_password))
        if self.revoke_sessions_on_password_reset:
            self.sessions.delete(user_id)
        logger.info("User %s reset their password", user_id)
        return MSG_PASSWORD_RESET

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def profile(self, user_id: str) -> User:
        user = self.store.get_user_by_id(user_id)
        if user is None:
            raise AuthError(ErrorKind.not_found, MSG_USER_NOT_FOUND)
        return user

    def update_profile(self, user_id: str, **fields) -> User:
        """Apply the given profile fields and return the updated user.

        Only the keys passed are written. None clears business_name or
        country_code; first_name and last_name are required columns.
        """
        for required in ("first_name", "last_name"):
            if required in fields and fields[required] is None:
                raise AuthError(ErrorKind.bad_request, f"{required} cannot be null")
        if not self.store.update_user(user_id, **fields):
            raise AuthError(ErrorKind.not_found, MSG_USER_NOT_FOUND)
        return self.profile(user_id)
