"""
Transforms from raw node payloads into cached records.

Every function here is pure and raises DecodeError when the payload does
not have the expected shape. Integers arrive either as JSON numbers or as
strings (64/128-bit values); decimals arrive either as 18-place fixed-point
integer strings or already rendered with a decimal point.
"""
import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from ..errors import DecodeError
from .models import (
    Auction,
    Bid,
    ContinuousVestingAccount,
    DelayedVestingAccount,
    FeeToken,
    PeriodicVestingAccount,
    Price,
    VestingAccount,
    VestingPeriod,
)

logger = logging.getLogger("chain.decode")

SDK_DEC_PRECISION = 18

CONTINUOUS_VESTING_ACCOUNT_TYPE_URL = "/cosmos.vesting.v1beta1.ContinuousVestingAccount"
PERIODIC_VESTING_ACCOUNT_TYPE_URL = "/cosmos.vesting.v1beta1.PeriodicVestingAccount"
DELAYED_VESTING_ACCOUNT_TYPE_URL = "/cosmos.vesting.v1beta1.DelayedVestingAccount"

GRAVITY_DENOM_PREFIX = "gravity"
ETHEREUM_CHAIN_ID = "1"


# =============================================================================
# Primitives
# =============================================================================

def _require(raw: Mapping[str, Any], key: str, context: str) -> Any:
    if not isinstance(raw, Mapping):
        raise DecodeError(f"{context}: expected an object, got {type(raw).__name__}")
    value = raw.get(key)
    if value is None:
        raise DecodeError(f"{context}: missing field {key!r}")
    return value


def parse_int(value: Any, context: str) -> int:
    if isinstance(value, bool):
        raise DecodeError(f"{context}: expected an integer, got {value!r}")
    try:
        return int(str(value))
    except (TypeError, ValueError):
        raise DecodeError(f"{context}: expected an integer, got {value!r}")


def sdk_dec_to_float(value: Any) -> float:
    """
    Decode a cosmos-sdk Dec.

    ``"1500000000000000000"`` (fixed-point, 18 places) and ``"1.5"`` both
    decode to 1.5.
    """
    text = str(value).strip()
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise DecodeError(f"error parsing decimal from string {value!r}")
    if not number.is_finite():
        raise DecodeError(f"decimal {value!r} is not finite")
    if "." not in text:
        number = number.scaleb(-SDK_DEC_PRECISION)
    return float(number)


def usomm_amount(coins: Optional[Iterable[Mapping[str, Any]]], denom: str) -> int:
    """Sum of the integer amounts in ``denom``; other denoms are ignored."""
    total = 0
    for coin in coins or ():
        if _require(coin, "denom", "coin") == denom:
            total += parse_int(_require(coin, "amount", "coin"), f"{denom} amount")
    return total


def dec_usomm_amount(dec_coins: Optional[Iterable[Mapping[str, Any]]], denom: str) -> int:
    """Sum of DecCoin amounts in ``denom``, truncated to whole base units."""
    total = 0
    for coin in dec_coins or ():
        if _require(coin, "denom", "dec coin") != denom:
            continue
        text = str(_require(coin, "amount", "dec coin")).strip()
        try:
            if "." in text:
                total += int(Decimal(text))
            else:
                total += int(text) // 10 ** SDK_DEC_PRECISION
        except (InvalidOperation, ValueError):
            raise DecodeError(f"error parsing {denom} dec coin amount {text!r}")
    return total


def coin_amount(raw: Any, context: str) -> int:
    return parse_int(_require(raw, "amount", context), context)


# =============================================================================
# Balances
# =============================================================================

def decode_balance(raw: Optional[Mapping[str, Any]], address: str) -> int:
    if raw is None:
        raise DecodeError(f"balance response for {address} has no balance")
    return coin_amount(raw, f"balance of {address}")


def decode_staking_pool(raw: Optional[Mapping[str, Any]]) -> int:
    return parse_int(_require(raw, "bonded_tokens", "staking pool"), "bonded_tokens")


# =============================================================================
# Auctions
# =============================================================================

class TokenRegistry:
    """
    Maps auctioned denoms to fee token descriptors.

    Gravity-bridged denoms (``gravity0x...``) carry their Ethereum contract
    address; symbol and decimals come from configured metadata.
    """

    def __init__(
        self,
        metadata: Optional[Mapping[str, Tuple[str, int]]] = None,
        default_decimals: int = 18,
    ):
        self._metadata: Dict[str, Tuple[str, int]] = dict(metadata or {})
        self._default_decimals = default_decimals

    def fee_token(self, denom: str) -> FeeToken:
        if not denom:
            raise DecodeError("empty token denom")

        if denom.startswith(GRAVITY_DENOM_PREFIX + "0x"):
            contract_address = denom[len(GRAVITY_DENOM_PREFIX):]
            chain_id = ETHEREUM_CHAIN_ID
        else:
            contract_address = ""
            chain_id = ""

        if denom in self._metadata:
            symbol, decimals = self._metadata[denom]
        else:
            logger.debug(f"No token metadata for {denom}, using defaults")
            symbol, decimals = denom, self._default_decimals

        return FeeToken(
            symbol=symbol,
            decimals=decimals,
            chain_id=chain_id,
            contract_address=contract_address,
        )


def decode_auction(raw: Mapping[str, Any], tokens: TokenRegistry) -> Auction:
    auction_id = parse_int(_require(raw, "id", "auction"), "auction id")
    context = f"auction {auction_id}"
    starting = _require(raw, "starting_tokens_for_sale", context)
    remaining = _require(raw, "remaining_tokens_for_sale", context)

    return Auction(
        id=auction_id,
        start_block=parse_int(_require(raw, "start_block", context), f"{context} start_block"),
        end_block=parse_int(raw.get("end_block", 0), f"{context} end_block"),
        fee_token=tokens.fee_token(_require(starting, "denom", f"{context} starting tokens")),
        initial_supply=coin_amount(starting, f"{context} starting tokens"),
        remaining_supply=coin_amount(remaining, f"{context} remaining tokens"),
        initial_unit_price_in_usomm=sdk_dec_to_float(
            _require(raw, "initial_unit_price_in_usomm", context)
        ),
        current_unit_price_in_usomm=sdk_dec_to_float(
            _require(raw, "current_unit_price_in_usomm", context)
        ),
        initial_price_decrease_rate=sdk_dec_to_float(
            _require(raw, "initial_price_decrease_rate", context)
        ),
        current_price_decrease_rate=sdk_dec_to_float(
            _require(raw, "current_price_decrease_rate", context)
        ),
        price_decrease_block_interval=parse_int(
            _require(raw, "price_decrease_block_interval", context),
            f"{context} price_decrease_block_interval",
        ),
    )


def decode_bid(raw: Mapping[str, Any], tokens: TokenRegistry) -> Bid:
    bid_id = parse_int(_require(raw, "id", "bid"), "bid id")
    context = f"bid {bid_id}"
    fulfilled = _require(raw, "total_fulfilled_sale_tokens", context)

    return Bid(
        id=bid_id,
        auction_id=parse_int(_require(raw, "auction_id", context), f"{context} auction_id"),
        fee_token=tokens.fee_token(_require(fulfilled, "denom", f"{context} fulfilled tokens")),
        bidder=str(_require(raw, "bidder", context)),
        max_bid_in_usomm=coin_amount(
            _require(raw, "max_bid_in_usomm", context), f"{context} max_bid_in_usomm"
        ),
        sale_token_minimum_amount=coin_amount(
            _require(raw, "sale_token_minimum_amount", context),
            f"{context} sale_token_minimum_amount",
        ),
        total_usomm_paid=coin_amount(
            _require(raw, "total_usomm_paid", context), f"{context} total_usomm_paid"
        ),
        total_fulfilled_sale_tokens=coin_amount(fulfilled, f"{context} fulfilled tokens"),
        sale_token_unit_price_in_usomm=sdk_dec_to_float(
            _require(raw, "sale_token_unit_price_in_usomm", context)
        ),
        block_height=parse_int(_require(raw, "block_height", context), f"{context} block_height"),
    )


def derive_price(auction: Auction) -> Price:
    """Price of one whole fee token in usomm, from the auction's current unit price."""
    unit_price = auction.current_unit_price_in_usomm
    if not math.isfinite(unit_price) or unit_price < 0:
        raise DecodeError(f"auction {auction.id} has invalid unit price {unit_price}")
    if auction.fee_token.decimals < 0:
        raise DecodeError(f"auction {auction.id} has negative token decimals")
    if not auction.fee_token.contract_address:
        raise DecodeError(f"auction {auction.id} fee token has no contract address")

    return Price(
        unit_price_in_usomm=int(round(unit_price * 10 ** auction.fee_token.decimals)),
        token_decimals=auction.fee_token.decimals,
        token_contract=auction.fee_token.contract_address,
        token_symbol=auction.fee_token.symbol,
    )


# =============================================================================
# Vesting accounts
# =============================================================================

def _base_vesting(raw: Mapping[str, Any], address: str) -> Mapping[str, Any]:
    return _require(raw, "base_vesting_account", f"vesting account {address}")


def decode_vesting_account(
    type_url: str,
    raw: Mapping[str, Any],
    address: str,
    denom: str,
) -> VestingAccount:
    """
    Decode an account by its type URL.

    Raises:
        DecodeError: For malformed payloads and non-vesting account types
    """
    context = f"vesting account {address}"

    if type_url == CONTINUOUS_VESTING_ACCOUNT_TYPE_URL:
        base = _base_vesting(raw, address)
        return ContinuousVestingAccount(
            address=address,
            original_vesting=usomm_amount(base.get("original_vesting"), denom),
            start_time=parse_int(_require(raw, "start_time", context), f"{context} start_time"),
            end_time=parse_int(_require(base, "end_time", context), f"{context} end_time"),
        )

    if type_url == PERIODIC_VESTING_ACCOUNT_TYPE_URL:
        periods = tuple(
            VestingPeriod(
                length=parse_int(_require(p, "length", context), f"{context} period length"),
                amount=usomm_amount(p.get("amount"), denom),
            )
            for p in raw.get("vesting_periods") or ()
        )
        return PeriodicVestingAccount(
            address=address,
            start_time=parse_int(_require(raw, "start_time", context), f"{context} start_time"),
            periods=periods,
        )

    if type_url == DELAYED_VESTING_ACCOUNT_TYPE_URL:
        base = _base_vesting(raw, address)
        return DelayedVestingAccount(
            address=address,
            original_vesting=usomm_amount(base.get("original_vesting"), denom),
            end_time=parse_int(_require(base, "end_time", context), f"{context} end_time"),
        )

    raise DecodeError(f"vesting account {address} is of an unhandled type: {type_url}")
