"""
Per-feed refresh configuration and feed-to-cache mapping.
"""
from enum import Enum
from typing import Any, Dict

from .core import CacheFeed, Feed


class LazyRefresh(Enum):
    """When a read path may trigger an inline refresh."""
    NEVER = "never"        # background polling only
    IF_STALE = "if_stale"
    IF_EMPTY = "if_empty"  # ended auctions rarely change; avoid request-driven spam


FEED_CONFIG: Dict[Feed, Dict[str, Any]] = {
    Feed.FOUNDATION_BALANCE: {
        "cache_feed": CacheFeed.BALANCES,
        "period_setting": "foundation_wallet_update_period",
        "lazy": LazyRefresh.NEVER,
    },
    Feed.COMMUNITY_POOL: {
        "cache_feed": CacheFeed.BALANCES,
        "period_setting": "community_pool_update_period",
        "lazy": LazyRefresh.NEVER,
    },
    Feed.STAKING_POOL: {
        "cache_feed": CacheFeed.BALANCES,
        "period_setting": "staking_update_period",
        "lazy": LazyRefresh.NEVER,
    },
    Feed.VESTING_BALANCES: {
        "cache_feed": CacheFeed.BALANCES,
        "period_setting": "vesting_update_period",
        "lazy": LazyRefresh.NEVER,
    },
    Feed.ACTIVE_AUCTIONS: {
        "cache_feed": CacheFeed.ACTIVE_AUCTIONS,
        "period_setting": "active_auctions_update_period",
        "lazy": LazyRefresh.IF_STALE,
    },
    Feed.ENDED_AUCTIONS: {
        "cache_feed": CacheFeed.ENDED_AUCTIONS,
        "period_setting": "ended_auctions_update_period",
        "lazy": LazyRefresh.IF_EMPTY,
    },
    Feed.BIDS: {
        "cache_feed": CacheFeed.BIDS_BY_AUCTION,
        "period_setting": "bids_update_period",
        "lazy": LazyRefresh.IF_STALE,
    },
    Feed.PRICES: {
        "cache_feed": CacheFeed.PRICE_BY_AUCTION,
        "period_setting": "price_update_period",
        "lazy": LazyRefresh.NEVER,
    },
}

BALANCE_FEEDS = (
    Feed.FOUNDATION_BALANCE,
    Feed.COMMUNITY_POOL,
    Feed.STAKING_POOL,
    Feed.VESTING_BALANCES,
)


def get_cache_feed(feed: Feed) -> CacheFeed:
    return FEED_CONFIG[feed]["cache_feed"]


def get_lazy_policy(feed: Feed) -> LazyRefresh:
    return FEED_CONFIG[feed]["lazy"]


def get_period_for_feed(feed: Feed, settings: Any) -> int:
    """
    Poll period for a feed, in seconds.

    The same value is the TTL applied after a successful refresh, so an
    entry turns stale roughly when its next scheduled poll is due.
    """
    return int(getattr(settings, FEED_CONFIG[feed]["period_setting"]))
