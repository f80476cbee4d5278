"""
Balance feeds: foundation wallets, community pool, staking pool, vesting.

All four write into the shared balances entry, each under its own keys.
"""
import time
from typing import Any, Callable, Dict, List, Mapping, Sequence

from ..accounting import COMMUNITY_POOL_KEY, STAKING_KEY
from ..cache import Feed
from ..chain.client import ChainClient
from ..chain.decode import (
    dec_usomm_amount,
    decode_balance,
    decode_staking_pool,
    decode_vesting_account,
)
from ..errors import SommStatsError
from .base import BalanceRefresher


class FoundationBalanceRefresher(BalanceRefresher):
    """Balances of the configured foundation wallets, fetched from one endpoint per cycle."""

    feed = Feed.FOUNDATION_BALANCE
    description = "foundation wallet balances"

    def __init__(self, *args, addresses: Sequence[str] = (), **kwargs):
        super().__init__(*args, **kwargs)
        self.addresses = list(addresses)

    def fetch(self, client: ChainClient) -> Dict[str, Any]:
        return {address: client.query_balance(address, self.denom) for address in self.addresses}

    def transform(self, raw: Mapping[str, Any]) -> Dict[str, int]:
        return {address: decode_balance(raw.get(address), address) for address in self.addresses}


class CommunityPoolRefresher(BalanceRefresher):
    feed = Feed.COMMUNITY_POOL
    description = "community pool balance"

    def fetch(self, client: ChainClient) -> List[Dict[str, Any]]:
        return client.query_community_pool()

    def transform(self, raw: List[Dict[str, Any]]) -> Dict[str, int]:
        return {COMMUNITY_POOL_KEY: dec_usomm_amount(raw, self.denom)}


class StakingPoolRefresher(BalanceRefresher):
    feed = Feed.STAKING_POOL
    description = "staking pool balance"

    def fetch(self, client: ChainClient) -> Dict[str, Any]:
        return client.query_staking_pool()

    def transform(self, raw: Dict[str, Any]) -> Dict[str, int]:
        return {STAKING_KEY: decode_staking_pool(raw)}


class VestingBalanceRefresher(BalanceRefresher):
    """
    Still-locked balances of the configured vesting accounts.

    Each address is queried with its own retry budget. Addresses that fail
    keep their previous value while the others are updated; the cycle still
    reports failure.
    """

    feed = Feed.VESTING_BALANCES
    description = "vesting balances"

    def __init__(
        self,
        *args,
        addresses: Sequence[str] = (),
        clock: Callable[[], float] = time.time,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.addresses = list(addresses)
        self._clock = clock

    def transform(self, raw: Any) -> Dict[str, int]:
        type_url, account_raw, address = raw
        account = decode_vesting_account(type_url, account_raw, address, self.denom)
        locked = account.locked_balance(int(self._clock()))
        self.logger.info(f"Locked balance for {address} is {locked}")
        if locked == 0:
            self.logger.warning(f"{address} has 0 locked")
        return {address: locked}

    def run(self) -> None:
        updates: Dict[str, int] = {}
        failures: Dict[str, Exception] = {}

        for address in self.addresses:
            try:
                type_url, account_raw = self.query(
                    lambda client: client.query_account_raw(address),
                    f"vesting account {address}",
                )
                updates.update(self.transform((type_url, account_raw, address)))
            except Exception as e:
                self.logger.error(f"Failed to update vesting balance of {address}: {e}")
                failures[address] = e

        if updates:
            self.install(updates)
            self.logger.info(f"Updated {len(updates)} vesting balances")

        if failures:
            raise SommStatsError(
                f"{len(failures)} of {len(self.addresses)} vesting balances not updated: "
                f"{', '.join(failures)}"
            )
