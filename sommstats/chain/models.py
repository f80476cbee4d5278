"""
Data models for chain-derived records.

Records are frozen so cached snapshots can be shared between threads
without copying.
"""
from dataclasses import dataclass
from typing import Tuple, Union


@dataclass(frozen=True)
class FeeToken:
    """Token sold in an auction."""
    symbol: str
    decimals: int
    chain_id: str
    contract_address: str


@dataclass(frozen=True)
class Auction:
    id: int
    start_block: int
    end_block: int
    fee_token: FeeToken
    initial_supply: int
    remaining_supply: int
    initial_unit_price_in_usomm: float
    current_unit_price_in_usomm: float
    initial_price_decrease_rate: float
    current_price_decrease_rate: float
    price_decrease_block_interval: int


@dataclass(frozen=True)
class Bid:
    id: int
    auction_id: int
    fee_token: FeeToken
    bidder: str
    max_bid_in_usomm: int
    sale_token_minimum_amount: int
    total_usomm_paid: int
    total_fulfilled_sale_tokens: int
    sale_token_unit_price_in_usomm: float
    block_height: int


@dataclass(frozen=True)
class Price:
    """Price of one whole fee token, derived from an active auction."""
    unit_price_in_usomm: int
    token_decimals: int
    token_contract: str
    token_symbol: str


# =============================================================================
# Vesting accounts
# =============================================================================

@dataclass(frozen=True)
class ContinuousVestingAccount:
    """Unlocks linearly between start_time and end_time."""
    address: str
    original_vesting: int
    start_time: int
    end_time: int

    def locked_balance(self, now: int) -> int:
        if now >= self.end_time:
            return 0
        if now <= self.start_time:
            return self.original_vesting
        unlocked_proportion = (now - self.start_time) / (self.end_time - self.start_time)
        return int(self.original_vesting * (1.0 - unlocked_proportion))


@dataclass(frozen=True)
class VestingPeriod:
    length: int
    amount: int


@dataclass(frozen=True)
class PeriodicVestingAccount:
    """Unlocks each period's amount once that period has elapsed."""
    address: str
    start_time: int
    periods: Tuple[VestingPeriod, ...]

    def locked_balance(self, now: int) -> int:
        locked = 0
        period_end = self.start_time
        for period in self.periods:
            period_end += period.length
            if now <= period_end:
                locked += period.amount
        return locked


@dataclass(frozen=True)
class DelayedVestingAccount:
    """Unlocks everything at end_time."""
    address: str
    original_vesting: int
    end_time: int

    def locked_balance(self, now: int) -> int:
        return 0 if now > self.end_time else self.original_vesting


VestingAccount = Union[ContinuousVestingAccount, PeriodicVestingAccount, DelayedVestingAccount]
