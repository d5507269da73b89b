"""
cache/store.py -- Session cache: user id -> currently valid token pair, with TTL.

The session cache is the authority for revocation. A token that verifies
cryptographically but does not match the cached pair for its subject is not
valid, and deleting an entry revokes both tokens at once.

Two backends share one interface:
  MemorySessionCache  -- in-process dict guarded by a lock. Default, and the
                         one tests use (the clock is injectable).
  SQLiteSessionCache  -- a single-table SQLite store, shared by every worker
                         process that points at the same file.

TTLs are given in milliseconds. Callers pass refresh lifetime (s) x 1000 so a
cache entry and its refresh token stop being usable at the same moment.

replace_if_equals() is the rotation primitive: it swaps the cached pair only
if the current one matches exactly, in one atomic step. Two concurrent
refreshes of the same pair cannot both succeed.

Usage:
    cache = create_session_cache("memory://")
    cache.set(user_id, pair, ttl_ms)
    cache.get(user_id)                                    # TokenPair or None
    cache.replace_if_equals(user_id, old, new, ttl_ms)    # True if swapped
    cache.delete(user_id)
    cache.purge_expired()                                 # call periodically
"""

from __future__ import annotations

import hmac
import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Optional

from auth.models import TokenPair

logger = logging.getLogger("authcore.cache")

_DDL = """
CREATE TABLE IF NOT EXISTS sessions (
    user_id        TEXT PRIMARY KEY,
    access_token   TEXT NOT NULL,
    refresh_token  TEXT NOT NULL,
    expires_at     REAL NOT NULL
);
"""


def _same_pair(a: TokenPair, b: TokenPair) -> bool:
    """Constant-time, byte-for-byte comparison of both tokens."""
    access_ok = hmac.compare_digest(a.access_token.encode(), b.access_token.encode())
    refresh_ok = hmac.compare_digest(a.refresh_token.encode(), b.refresh_token.encode())
    return access_ok and refresh_ok


class SessionCache(ABC):
    """Key-value store of active token pairs keyed by user id."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[TokenPair]:
        """Return the live pair for user_id, or None if absent or expired."""

    @abstractmethod
    def set(self, user_id: str, pair: TokenPair, ttl_ms: int) -> None:
        """Store pair for user_id, replacing any existing entry."""

    @abstractmethod
    def delete(self, user_id: str) -> None:
        """Remove the entry for user_id. A missing entry is not an error."""

    @abstractmethod
    def replace_if_equals(self, user_id: str, expected: TokenPair, new: TokenPair, ttl_ms: int) -> bool:
        """Atomically replace the live entry with new if it equals expected."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number of entries removed."""

    def close(self) -> None:
        pass


class MemorySessionCache(SessionCache):
    """In-process session cache.

    clock returns wall-clock seconds as a float, the same timeline as token
    exp claims and SQLiteSessionCache. Tests pass a fake clock to move time
    forward without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[TokenPair, float]] = {}
        self._lock = threading.Lock()

    def _live(self, user_id: str) -> Optional[TokenPair]:
        # Caller holds the lock.
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        pair, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[user_id]
            return None
        return pair

    def get(self, user_id: str) -> Optional[TokenPair]:
        with self._lock:
            return self._live(user_id)

    def set(self, user_id: str, pair: TokenPair, ttl_ms: int) -> None:
        with self._lock:
            self._entries[user_id] = (pair, self._clock() + ttl_ms / 1000)

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def replace_if_equals(self, user_id: str, expected: TokenPair, new: TokenPair, ttl_ms: int) -> bool:
        with self._lock:
            current = self._live(user_id)
            if current is None or not _same_pair(current, expected):
                return False
            self._entries[user_id] = (new, self._clock() + ttl_ms / 1000)
            return True

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [uid for uid, (_, expires_at) in self._entries.items() if now >= expires_at]
            for uid in stale:
                del self._entries[uid]
            return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SQLiteSessionCache(SessionCache):
    """SQLite-backed session cache.

    Every statement that must be atomic is a single SQL statement, and a lock
    serializes use of the shared connection across threads. The rotation CAS
    is one conditional UPDATE whose rowcount reports whether it won.
    """

    def __init__(self, db_path: Path | str, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def get(self, user_id: str) -> Optional[TokenPair]:
        with self._lock:
            row = self._conn.execute(
                "SELECT access_token, refresh_token FROM sessions WHERE user_id = ? AND expires_at > ?",
                (user_id, self._clock()),
            ).fetchone()
        if row is None:
            return None
        return TokenPair(access_token=row[0], refresh_token=row[1])

    def set(self, user_id: str, pair: TokenPair, ttl_ms: int) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO sessions (user_id, access_token, refresh_token, expires_at) "
                "VALUES (?, ?, ?, ?)",
                (user_id, pair.access_token, pair.refresh_token, self._clock() + ttl_ms / 1000),
            )
            self._conn.commit()

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
            self._conn.commit()

    def replace_if_equals(self, user_id: str, expected: TokenPair, new: TokenPair, ttl_ms: int) -> bool:
        now = self._clock()
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE sessions SET access_token = ?, refresh_token = ?, expires_at = ? "
                "WHERE user_id = ? AND access_token = ? AND refresh_token = ? AND expires_at > ?",
                (
                    new.access_token,
                    new.refresh_token,
                    now + ttl_ms / 1000,
                    user_id,
                    expected.access_token,
                    expected.refresh_token,
                    now,
                ),
            )
            self._conn.commit()
        return cursor.rowcount == 1

    def purge_expired(self) -> int:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (self._clock(),))
            self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()


def create_session_cache(url: str) -> SessionCache:
    """Build a session cache from a URL: "memory://" or "sqlite:///path/to/file.db"."""
    if url == "memory://":
        return MemorySessionCache()
    if url.startswith("sqlite:///"):
        return SQLiteSessionCache(url[len("sqlite:///") :])
    raise ValueError(f"Unsupported SESSION_CACHE_URL: {url!r}")
