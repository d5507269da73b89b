"""
auth/passwords.py -- Password hashing (bcrypt, direct usage, no passlib wrapper).

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

bcrypt ignores everything past 72 bytes, so two long passwords sharing a
prefix would hash alike. Every password is therefore reduced to the base64 of
its SHA-256 digest (44 bytes) before bcrypt sees it, the same construction as
passlib's bcrypt_sha256 scheme.

PasswordHasher is an instance rather than module functions so the cost factor
comes from Settings.bcrypt_rounds (tests run with 4 rounds).

Layer rule: no imports from api/, core/, or cache/.
"""

from __future__ import annotations

import base64
import hashlib

import bcrypt


def _prehash(plain: str) -> bytes:
    return base64.b64encode(hashlib.sha256(plain.encode("utf-8")).digest())


class PasswordHasher:
    """One-way hash plus constant-time verify.

    dummy_hash enables timing equalization: the login path verifies against it
    when the email is unknown, so response time does not reveal whether an
    account exists.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Computed once so the first login attempt is not measurably slower.
        self.dummy_hash: str = self.hash("authcore_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the SHA-256 pre-hash of the given password."""
        return bcrypt.hashpw(_prehash(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash."""
        try:
            return bcrypt.checkpw(_prehash(plain), hashed.encode("utf-8"))
        except ValueError:
            # Malformed stored hash.
            return False
