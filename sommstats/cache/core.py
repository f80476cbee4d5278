"""
Core cache data structures.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class CacheFeed(Enum):
    """Named entries held by the cache store."""
    BALANCES = "balances"                  # balance id -> amount in base denom
    ACTIVE_AUCTIONS = "active_auctions"    # auction id -> Auction
    ENDED_AUCTIONS = "ended_auctions"      # auction id -> Auction
    BIDS_BY_AUCTION = "bids_by_auction"    # auction id -> tuple of Bid
    PRICE_BY_AUCTION = "price_by_auction"  # auction id -> Price


class Feed(Enum):
    """Refresh jobs. Several balance jobs share the BALANCES entry."""
    FOUNDATION_BALANCE = "foundation_balance"
    COMMUNITY_POOL = "community_pool"
    STAKING_POOL = "staking_pool"
    VESTING_BALANCES = "vesting_balances"
    ACTIVE_AUCTIONS = "active_auctions"
    ENDED_AUCTIONS = "ended_auctions"
    BIDS = "bids"
    PRICES = "prices"


@dataclass
class TimedEntry(Generic[T]):
    """
    A value paired with an absolute expiration time.

    A new entry expires "now", so it reads as stale until the first
    successful write sets a real expiration.
    """
    value: T
    clock: Callable[[], float] = time.time
    expires_at: float = field(init=False)
    updated_at: Optional[float] = None

    def __post_init__(self):
        self.expires_at = self.clock()

    def is_stale(self) -> bool:
        return self.clock() >= self.expires_at

    def set_expiration(self, ttl_seconds: float) -> None:
        """Expire ``ttl_seconds`` from now. Call only after writing ``value``."""
        now = self.clock()
        self.updated_at = now
        self.expires_at = now + ttl_seconds

    @property
    def is_populated(self) -> bool:
        """True once a value has been written and stamped."""
        return self.updated_at is not None

    @property
    def seconds_to_expiry(self) -> float:
        return max(0.0, self.expires_at - self.clock())
