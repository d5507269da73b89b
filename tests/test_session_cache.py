"""Unit tests for cache/store.py -- session cache backends.

Every behavioral test runs against both MemorySessionCache and
SQLiteSessionCache, driven by a FakeClock so TTL expiry needs no sleeping.

Covers:
- set/get/delete, delete of a missing entry
- entries disappear at exactly their TTL
- replace_if_equals() swaps only on an exact live match
- concurrent replace_if_equals() on the same pair: exactly one winner
- purge_expired() counts and removes only stale entries
- create_session_cache() URL handling
"""

from __future__ import annotations

import threading
import time

import pytest

from auth.models import TokenPair
from cache.store import MemorySessionCache, SessionCache, SQLiteSessionCache, create_session_cache

TTL_MS = 60_000

OLD = TokenPair(access_token="access-1", refresh_token="refresh-1")
NEW = TokenPair(access_token="access-2", refresh_token="refresh-2")


@pytest.fixture(params=["memory", "sqlite"])
def cache(request, clock, tmp_path) -> SessionCache:
    if request.param == "memory":
        c: SessionCache = MemorySessionCache(clock=clock)
    else:
        c = SQLiteSessionCache(tmp_path / "sessions.db", clock=clock)
    yield c
    c.close()


def test_get_missing_returns_none(cache):
    assert cache.get("nobody") is None


def test_set_then_get_returns_pair(cache):
    cache.set("u1", OLD, TTL_MS)
    assert cache.get("u1") == OLD


def test_set_replaces_existing_entry(cache):
    cache.set("u1", OLD, TTL_MS)
    cache.set("u1", NEW, TTL_MS)
    assert cache.get("u1") == NEW


def test_entries_are_per_user(cache):
    cache.set("u1", OLD, TTL_MS)
    cache.set("u2", NEW, TTL_MS)
    assert cache.get("u1") == OLD
    assert cache.get("u2") == NEW


def test_delete_removes_entry_and_is_idempotent(cache):
    cache.set("u1", OLD, TTL_MS)
    cache.delete("u1")
    assert cache.get("u1") is None
    cache.delete("u1")
    cache.delete("never-set")
    assert cache.get("u1") is None


def test_entry_expires_at_ttl(cache, clock):
    cache.set("u1", OLD, TTL_MS)
    clock.advance(TTL_MS / 1000 - 1)
    assert cache.get("u1") == OLD
    clock.advance(1)
    assert cache.get("u1") is None


class TestReplaceIfEquals:
    def test_swaps_on_exact_match(self, cache):
        cache.set("u1", OLD, TTL_MS)
        assert cache.replace_if_equals("u1", OLD, NEW, TTL_MS) is True
        assert cache.get("u1") == NEW

    def test_second_swap_with_same_expected_fails(self, cache):
        cache.set("u1", OLD, TTL_MS)
        assert cache.replace_if_equals("u1", OLD, NEW, TTL_MS) is True
        third = TokenPair(access_token="access-3", refresh_token="refresh-3")
        assert cache.replace_if_equals("u1", OLD, third, TTL_MS) is False
        assert cache.get("u1") == NEW

    def test_absent_entry_fails(self, cache):
        assert cache.replace_if_equals("u1", OLD, NEW, TTL_MS) is False
        assert cache.get("u1") is None

    @pytest.mark.parametrize(
        "expected",
        [
            TokenPair(access_token="access-1", refresh_token="refresh-X"),
            TokenPair(access_token="access-X", refresh_token="refresh-1"),
        ],
    )
    def test_partial_match_fails(self, cache, expected):
        cache.set("u1", OLD, TTL_MS)
        assert cache.replace_if_equals("u1", expected, NEW, TTL_MS) is False
        assert cache.get("u1") == OLD

    def test_expired_entry_fails(self, cache, clock):
        cache.set("u1", OLD, TTL_MS)
        clock.advance(TTL_MS / 1000)
        assert cache.replace_if_equals("u1", OLD, NEW, TTL_MS) is False
        assert cache.get("u1") is None

    def test_swap_resets_ttl(self, cache, clock):
        cache.set("u1", OLD, TTL_MS)
        clock.advance(TTL_MS / 1000 - 1)
        assert cache.replace_if_equals("u1", OLD, NEW, TTL_MS) is True
        clock.advance(TTL_MS / 1000 - 1)
        assert cache.get("u1") == NEW

    def test_concurrent_swaps_have_one_winner(self, cache):
        cache.set("u1", OLD, TTL_MS)
        results: list[bool] = []
        results_lock = threading.Lock()
        start = threading.Barrier(8)

        def worker(n: int) -> None:
            start.wait()
            won = cache.replace_if_equals("u1", OLD, TokenPair(f"access-w{n}", f"refresh-w{n}"), TTL_MS)
            with results_lock:
                results.append(won)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert cache.get("u1") != OLD


def test_purge_expired_removes_only_stale_entries(cache, clock):
    cache.set("short", OLD, 1_000)
    cache.set("long", NEW, TTL_MS)
    clock.advance(2)
    assert cache.purge_expired() == 1
    assert cache.get("long") == NEW
    assert cache.purge_expired() == 0


def test_memory_cache_purge_shrinks_storage(clock):
    c = MemorySessionCache(clock=clock)
    c.set("u1", OLD, 1_000)
    c.set("u2", NEW, 1_000)
    clock.advance(5)
    assert len(c) == 2
    assert c.purge_expired() == 2
    assert len(c) == 0


def test_sqlite_cache_is_shared_between_instances(tmp_path, clock):
    path = tmp_path / "shared.db"
    first = SQLiteSessionCache(path, clock=clock)
    second = SQLiteSessionCache(path, clock=clock)
    try:
        first.set("u1", OLD, TTL_MS)
        assert second.get("u1") == OLD
        assert second.replace_if_equals("u1", OLD, NEW, TTL_MS) is True
        assert first.get("u1") == NEW
    finally:
        first.close()
        second.close()


class TestCreateSessionCache:
    def test_memory_url(self):
        assert isinstance(create_session_cache("memory://"), MemorySessionCache)

    def test_sqlite_url(self, tmp_path):
        c = create_session_cache(f"sqlite:///{tmp_path / 'sessions.db'}")
        try:
            assert isinstance(c, SQLiteSessionCache)
        finally:
            c.close()

    def test_unknown_url_raises(self):
        with pytest.raises(ValueError):
            create_session_cache("redis://localhost:6379/0")


def test_memory_cache_default_clock_is_wall_clock():
    c = MemorySessionCache()
    before = time.time()
    c.set("u1", OLD, TTL_MS)
    _, expires_at = c._entries["u1"]
    assert before + TTL_MS / 1000 <= expires_at <= time.time() + TTL_MS / 1000
