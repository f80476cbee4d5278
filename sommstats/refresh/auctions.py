"""
Auction feeds: active auctions, ended auctions, bids, and derived prices.
"""
from typing import Any, Dict, List, Tuple

from ..cache import CacheFeed, Feed
from ..chain.client import ChainClient
from ..chain.decode import TokenRegistry, decode_auction, decode_bid, derive_price
from ..chain.models import Auction, Bid, Price
from ..errors import DecodeError, SommStatsError
from .base import Refresher


def _require_active_auctions(store) -> None:
    if not store.is_populated(CacheFeed.ACTIVE_AUCTIONS):
        raise SommStatsError("active auctions have not been fetched yet")


class _AuctionMapRefresher(Refresher):
    """Auction list feeds. One malformed auction aborts the whole cycle."""

    def __init__(self, *args, tokens: TokenRegistry, **kwargs):
        super().__init__(*args, **kwargs)
        self.tokens = tokens

    def transform(self, raw: List[Dict[str, Any]]) -> Dict[int, Auction]:
        auctions = [decode_auction(a, self.tokens) for a in raw]
        return {a.id: a for a in auctions}


class ActiveAuctionsRefresher(_AuctionMapRefresher):
    feed = Feed.ACTIVE_AUCTIONS
    description = "active auctions"

    def fetch(self, client: ChainClient) -> List[Dict[str, Any]]:
        return client.query_active_auctions()


class EndedAuctionsRefresher(_AuctionMapRefresher):
    feed = Feed.ENDED_AUCTIONS
    description = "ended auctions"

    def fetch(self, client: ChainClient) -> List[Dict[str, Any]]:
        return client.query_ended_auctions()


class BidsRefresher(Refresher):
    """
    Bids for every currently active auction.

    The auction ids come from the active auctions cache at the start of the
    cycle. If the bids of any auction cannot be fetched the whole cycle is
    aborted and the previous map stays in place. Individual bids that fail
    to decode are skipped.
    """

    feed = Feed.BIDS
    description = "bids by active auction"

    def __init__(self, *args, tokens: TokenRegistry, **kwargs):
        super().__init__(*args, **kwargs)
        self.tokens = tokens

    def transform(self, raw: List[Dict[str, Any]]) -> Tuple[Bid, ...]:
        bids = []
        for raw_bid in raw:
            try:
                bids.append(decode_bid(raw_bid, self.tokens))
            except DecodeError as e:
                self.logger.warning(f"Skipping malformed bid: {e}")
        return tuple(bids)

    def run(self) -> None:
        _require_active_auctions(self.store)
        auction_ids = sorted(self.store.read(CacheFeed.ACTIVE_AUCTIONS))
        bids_by_auction: Dict[int, Tuple[Bid, ...]] = {}

        for auction_id in auction_ids:
            raw = self.query(
                lambda client: client.query_auction_bids(auction_id),
                f"bids for active auction {auction_id}",
            )
            bids_by_auction[auction_id] = self.transform(raw)

        self.install(bids_by_auction)
        self.logger.info(f"Updated bids for {len(bids_by_auction)} active auctions")


class PriceRefresher(Refresher):
    """
    Prices derived from the active auctions cache; no network calls.

    Auctions whose price cannot be derived are skipped.
    """

    feed = Feed.PRICES
    description = "price by auction"

    def transform(self, raw: Dict[int, Auction]) -> Dict[int, Price]:
        prices = {}
        for auction_id, auction in raw.items():
            try:
                prices[auction_id] = derive_price(auction)
            except DecodeError as e:
                self.logger.warning(f"Skipping price for auction {auction_id}: {e}")
        return prices

    def run(self) -> None:
        _require_active_auctions(self.store)
        prices = self.transform(self.store.read(CacheFeed.ACTIVE_AUCTIONS))
        self.install(prices)
        self.logger.info(f"Updated prices for {len(prices)} auctions")
