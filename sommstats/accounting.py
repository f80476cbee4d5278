"""
Circulating supply accounting.

Circulating supply == total supply - foundation wallets - staking
- community pool - still-vesting balances, in whole tokens.
"""
import logging
from typing import Any, List

from .cache import CacheFeed, CacheStore

logger = logging.getLogger("accounting")

COMMUNITY_POOL_KEY = "communitypool"
STAKING_KEY = "staking"


def non_circulating_keys(settings: Any) -> List[str]:
    """Every balance key that must be present before supply can be computed."""
    return [
        *settings.foundation_addresses,
        STAKING_KEY,
        COMMUNITY_POOL_KEY,
        *settings.vesting_accounts,
    ]


def circulating_supply(store: CacheStore, settings: Any) -> int:
    """
    Compute circulating supply from the balances cache.

    Balances are fetched key by key rather than summed wholesale: a missing
    entry would otherwise make the result overshoot.

    Raises:
        CacheUnpopulatedError: If any required balance has never been fetched
        ValueError: If the non-circulating balances exceed the total supply
    """
    balances = store.require(CacheFeed.BALANCES, non_circulating_keys(settings))
    non_circulating = sum(balances.values())

    if non_circulating > settings.total_supply:
        raise ValueError(
            f"non-circulating balances ({non_circulating}) exceed total supply "
            f"({settings.total_supply})"
        )

    return (settings.total_supply - non_circulating) // 10 ** settings.base_unit_exponent
