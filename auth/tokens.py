"""
auth/tokens.py -- JWT signing and verification.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens carry the same claims
       ({sub, email, role, iat, jti}) but are signed with different secrets and
       lifetimes, so one can never be presented as the other.

  Verification is all-or-nothing: verify() either returns the full payload or
       raises TokenError. Expiry is reported separately from every other
       failure (bad signature, malformed token, missing subject) so callers can
       produce distinct messages.

  jti: a fresh uuid4 per pair. Two pairs minted in the same second for the same
       user still differ, which keeps the session cache's exact-match check
       meaningful.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import TokenError, TokenFailure
from auth.models import TokenPair

_ALGORITHM = "HS256"


class TokenCodec:
    """Signs and verifies compact, expiring, tamper-evident claims tokens.

    The codec holds both secrets and lifetimes so AuthService can mint a pair
    in one call. sign() and verify() take the secret explicitly and are usable
    on their own.

    Usage:
        codec = TokenCodec(access_secret, refresh_secret, 300, 86400)
        pair = codec.issue_pair(user_id, email, role)
        claims = codec.verify(pair.refresh_token, codec.refresh_secret)
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl_seconds: int,
        refresh_ttl_seconds: int,
    ) -> None:
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.access_ttl_seconds = access_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def sign(self, claims: dict, secret: str, ttl_seconds: int) -> str:
        """Encode claims as a signed JWT that expires ttl_seconds from now.

        A negative ttl yields an already-expired token (used by tests).
        """
        expire = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        payload = {**claims, "exp": int(expire.timestamp())}
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    def verify(self, token: str, secret: str) -> dict:
        """Decode and verify a JWT. Returns the payload or raises TokenError."""
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenError(TokenFailure.expired, str(exc)) from exc
        except JWTError as exc:
            raise TokenError(TokenFailure.invalid, str(exc)) from exc
        if not isinstance(payload, dict) or not payload.get("sub"):
            raise TokenError(TokenFailure.invalid, "token has no subject")
        return payload

    # ------------------------------------------------------------------
    # Pair issuance
    # ------------------------------------------------------------------

    def build_claims(self, user_id: str, email: str, role: str) -> dict:
        return {
            "sub": user_id,
            "email": email,
            "role": role,
            "iat": int(datetime.now(timezone.utc).timestamp()),
            "jti": uuid.uuid4().hex,
        }

    def issue_pair(self, user_id: str, email: str, role: str) -> TokenPair:
        """Mint a new access/refresh pair sharing one claims payload. No side effects."""
        claims = self.build_claims(user_id, email, role)
        return TokenPair(
            access_token=self.sign(claims, self.access_secret, self.access_ttl_seconds),
            refresh_token=self.sign(claims, self.refresh_secret, self.refresh_ttl_seconds),
        )

    def verify_access(self, token: str) -> dict:
        return self.verify(token, self.access_secret)

    def verify_refresh(self, token: str) -> dict:
        return self.verify(token, self.refresh_secret)
