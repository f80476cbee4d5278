"""
In-memory feed caches with time-based expiration and single-flight refresh.
"""
from .core import CacheFeed, Feed, TimedEntry
from .locks import ReadWriteLock
from .ttl_policies import (
    BALANCE_FEEDS,
    FEED_CONFIG,
    LazyRefresh,
    get_cache_feed,
    get_lazy_policy,
    get_period_for_feed,
)
from .coalescer import RefreshCoalescer
from .store import CacheStore

__all__ = [
    # Core types
    "CacheFeed",
    "Feed",
    "TimedEntry",
    "ReadWriteLock",
    # Feed policies
    "BALANCE_FEEDS",
    "FEED_CONFIG",
    "LazyRefresh",
    "get_cache_feed",
    "get_lazy_policy",
    "get_period_for_feed",
    # Coalescing
    "RefreshCoalescer",
    # Store
    "CacheStore",
]
