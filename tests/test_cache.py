"""
Unit tests for the cache layer: timed entries, the store, locks, coalescing.
"""
import threading
import time

import pytest

from sommstats.cache import (
    CacheFeed,
    CacheStore,
    Feed,
    ReadWriteLock,
    RefreshCoalescer,
    TimedEntry,
    get_cache_feed,
    get_period_for_feed,
)
from sommstats.errors import CacheUnpopulatedError


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


# =============================================================================
# TimedEntry
# =============================================================================

def test_new_entry_is_stale():
    """A fresh entry expires immediately so the first fetch is forced"""
    entry = TimedEntry(value={})
    assert entry.is_stale()
    assert not entry.is_populated


def test_entry_expires_at_creation_time():
    """Test that expiration is stamped from the clock, not passed in"""
    clock = FakeClock(now=42.0)
    entry = TimedEntry(value={}, clock=clock)
    assert entry.expires_at == 42.0
    assert entry.updated_at is None

    with pytest.raises(TypeError):
        TimedEntry(value={}, clock=clock, expires_at=100.0)


def test_entry_fresh_until_ttl_elapses():
    """Test that an entry stays fresh for exactly its TTL"""
    clock = FakeClock()
    entry = TimedEntry(value={}, clock=clock)

    entry.set_expiration(30)
    assert not entry.is_stale()
    assert entry.is_populated

    clock.now += 29
    assert not entry.is_stale()

    clock.now += 1
    assert entry.is_stale()


# =============================================================================
# CacheStore
# =============================================================================

def test_every_feed_starts_stale_and_empty():
    """Test that a new store forces a first fetch of every feed"""
    store = CacheStore()
    for feed in CacheFeed:
        assert store.is_stale(feed)
        assert store.is_empty(feed)
        assert not store.is_populated(feed)


def test_write_replaces_value_and_resets_expiration():
    """Test that write swaps the value and sets a new expiry"""
    clock = FakeClock()
    store = CacheStore(clock=clock)

    store.write(CacheFeed.ACTIVE_AUCTIONS, {1: "a"}, ttl_seconds=60)
    assert not store.is_stale(CacheFeed.ACTIVE_AUCTIONS)
    assert store.expires_at(CacheFeed.ACTIVE_AUCTIONS) == 1060

    store.write(CacheFeed.ACTIVE_AUCTIONS, {2: "b"}, ttl_seconds=60)
    assert dict(store.read(CacheFeed.ACTIVE_AUCTIONS)) == {2: "b"}


def test_read_returns_read_only_snapshot():
    """Test that readers get an immutable view unaffected by later writes"""
    store = CacheStore()
    store.write(CacheFeed.BALANCES, {"staking": 1}, ttl_seconds=60)

    snapshot = store.read(CacheFeed.BALANCES)
    with pytest.raises(TypeError):
        snapshot["staking"] = 2  # type: ignore[index]

    store.write(CacheFeed.BALANCES, {"staking": 3}, ttl_seconds=60)
    assert snapshot["staking"] == 1


def test_merge_keeps_other_keys():
    """Test that merge only touches the keys it is given"""
    store = CacheStore()
    store.merge(CacheFeed.BALANCES, {"staking": 50}, ttl_seconds=60)
    store.merge(CacheFeed.BALANCES, {"communitypool": 20}, ttl_seconds=60)

    assert dict(store.read(CacheFeed.BALANCES)) == {"staking": 50, "communitypool": 20}


def test_seed_leaves_entry_stale():
    """Test that seeded values are readable but still stale"""
    store = CacheStore()
    store.seed(CacheFeed.BALANCES, {"staking": 50})

    assert store.get(CacheFeed.BALANCES, "staking") == 50
    assert store.is_stale(CacheFeed.BALANCES)
    assert not store.is_populated(CacheFeed.BALANCES)


def test_require_raises_for_missing_key():
    """Test that require names the first missing key"""
    store = CacheStore()
    store.merge(CacheFeed.BALANCES, {"staking": 50}, ttl_seconds=60)

    assert store.require(CacheFeed.BALANCES, ["staking"]) == {"staking": 50}
    with pytest.raises(CacheUnpopulatedError) as exc_info:
        store.require(CacheFeed.BALANCES, ["staking", "communitypool"])
    assert exc_info.value.key == "communitypool"


def test_stats_reports_every_feed():
    """Test that stats covers every cache feed"""
    store = CacheStore()
    store.write(CacheFeed.PRICE_BY_AUCTION, {1: "p"}, ttl_seconds=60)

    stats = store.stats()
    assert set(stats) == {feed.value for feed in CacheFeed}
    assert stats["price_by_auction"]["entries"] == 1
    assert stats["price_by_auction"]["stale"] is False
    assert stats["balances"]["stale"] is True


def test_feed_locks_are_independent():
    """A held balances write lock does not block an auctions read"""
    store = CacheStore()
    store._locks[CacheFeed.BALANCES].acquire_write()
    try:
        result = []
        reader = threading.Thread(
            target=lambda: result.append(store.read(CacheFeed.ACTIVE_AUCTIONS))
        )
        reader.start()
        reader.join(timeout=2)
        assert not reader.is_alive()
        assert result == [{}]
    finally:
        store._locks[CacheFeed.BALANCES].release_write()


# =============================================================================
# ReadWriteLock
# =============================================================================

def test_readers_share_the_lock():
    """Test that two readers can hold the lock together"""
    lock = ReadWriteLock()
    lock.acquire_read()
    acquired = threading.Event()

    def second_reader():
        with lock.read_locked():
            acquired.set()

    thread = threading.Thread(target=second_reader)
    thread.start()
    assert acquired.wait(timeout=2)
    thread.join()
    lock.release_read()


def test_writer_waits_for_readers_and_blocks_new_readers():
    """Test that a waiting writer goes before later readers"""
    lock = ReadWriteLock()
    lock.acquire_read()
    order = []

    def writer():
        with lock.write_locked():
            order.append("writer")

    def late_reader():
        with lock.read_locked():
            order.append("reader")

    writer_thread = threading.Thread(target=writer)
    writer_thread.start()
    # Let the writer register as waiting
    deadline = time.time() + 2
    while not lock._writers_waiting and time.time() < deadline:
        time.sleep(0.001)
    assert lock._writers_waiting == 1

    reader_thread = threading.Thread(target=late_reader)
    reader_thread.start()
    time.sleep(0.05)
    assert order == []

    lock.release_read()
    writer_thread.join(timeout=2)
    reader_thread.join(timeout=2)
    assert order == ["writer", "reader"]


# =============================================================================
# RefreshCoalescer
# =============================================================================

def test_coalescer_shares_one_run_between_concurrent_callers():
    """Test that concurrent callers share a single run"""
    coalescer = RefreshCoalescer()
    started = threading.Event()
    release = threading.Event()
    runs = []

    def slow_refresh():
        runs.append(1)
        started.set()
        release.wait(timeout=2)
        return "done"

    results = []
    initiator = threading.Thread(target=lambda: results.append(coalescer.run("bids", slow_refresh)))
    initiator.start()
    assert started.wait(timeout=2)

    joiners = [
        threading.Thread(target=lambda: results.append(coalescer.run("bids", slow_refresh)))
        for _ in range(5)
    ]
    for t in joiners:
        t.start()
    time.sleep(0.05)
    release.set()
    for t in [initiator, *joiners]:
        t.join(timeout=2)

    assert len(runs) == 1
    assert results == ["done"] * 6
    assert not coalescer.is_running("bids")


def test_coalescer_propagates_errors():
    """Test that the initiator sees the error and the key is released"""
    coalescer = RefreshCoalescer()

    def failing():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        coalescer.run("feed", failing)
    assert coalescer.get_stats()["active_refreshes"] == 0


# =============================================================================
# Feed policies
# =============================================================================

def test_balance_feeds_share_balances_entry(settings):
    """Test that all balance feeds map to the balances entry"""
    for feed in (Feed.FOUNDATION_BALANCE, Feed.COMMUNITY_POOL, Feed.STAKING_POOL, Feed.VESTING_BALANCES):
        assert get_cache_feed(feed) is CacheFeed.BALANCES
    assert get_period_for_feed(Feed.BIDS, settings) == settings.bids_update_period
