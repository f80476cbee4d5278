"""
Per-feed refreshers and their construction from settings.
"""
import time
from typing import Any, Callable, Dict, Optional

from ..cache import CacheStore, Feed, get_period_for_feed
from ..chain.client import ClientFactory
from ..chain.decode import TokenRegistry
from ..retry import RetryPolicy
from .auctions import (
    ActiveAuctionsRefresher,
    BidsRefresher,
    EndedAuctionsRefresher,
    PriceRefresher,
)
from .balances import (
    CommunityPoolRefresher,
    FoundationBalanceRefresher,
    StakingPoolRefresher,
    VestingBalanceRefresher,
)
from .base import BalanceRefresher, Refresher

__all__ = [
    "Refresher",
    "BalanceRefresher",
    "FoundationBalanceRefresher",
    "CommunityPoolRefresher",
    "StakingPoolRefresher",
    "VestingBalanceRefresher",
    "ActiveAuctionsRefresher",
    "EndedAuctionsRefresher",
    "BidsRefresher",
    "PriceRefresher",
    "build_refreshers",
]


def build_refreshers(
    settings: Any,
    store: CacheStore,
    client_factory: ClientFactory,
    retry_policy: Optional[RetryPolicy] = None,
    clock: Callable[[], float] = time.time,
) -> Dict[Feed, Refresher]:
    """Create one refresher per feed, each with its period as TTL."""
    if retry_policy is None:
        retry_policy = RetryPolicy(
            max_retries=settings.failed_query_retries,
            base_delay=settings.retry_base_delay_seconds,
        )
    tokens = TokenRegistry(
        {denom: (meta.symbol, meta.decimals) for denom, meta in settings.fee_tokens.items()},
        default_decimals=settings.default_token_decimals,
    )

    def common(feed: Feed) -> Dict[str, Any]:
        return {
            "store": store,
            "client_factory": client_factory,
            "endpoints": settings.endpoints,
            "retry_policy": retry_policy,
            "ttl_seconds": get_period_for_feed(feed, settings),
        }

    return {
        Feed.FOUNDATION_BALANCE: FoundationBalanceRefresher(
            **common(Feed.FOUNDATION_BALANCE),
            denom=settings.denom,
            addresses=settings.foundation_addresses,
        ),
        Feed.COMMUNITY_POOL: CommunityPoolRefresher(
            **common(Feed.COMMUNITY_POOL), denom=settings.denom
        ),
        Feed.STAKING_POOL: StakingPoolRefresher(
            **common(Feed.STAKING_POOL), denom=settings.denom
        ),
        Feed.VESTING_BALANCES: VestingBalanceRefresher(
            **common(Feed.VESTING_BALANCES),
            denom=settings.denom,
            addresses=settings.vesting_accounts,
            clock=clock,
        ),
        Feed.ACTIVE_AUCTIONS: ActiveAuctionsRefresher(**common(Feed.ACTIVE_AUCTIONS), tokens=tokens),
        Feed.ENDED_AUCTIONS: EndedAuctionsRefresher(**common(Feed.ENDED_AUCTIONS), tokens=tokens),
        Feed.BIDS: BidsRefresher(**common(Feed.BIDS), tokens=tokens),
        Feed.PRICES: PriceRefresher(**common(Feed.PRICES)),
    }
