"""
Pydantic schemas for API response models
"""
from pydantic import BaseModel
from typing import List, Optional


# ===== AUCTION SCHEMAS =====

class FeeToken(BaseModel):
    """Token sold in an auction"""
    symbol: str
    decimals: int
    chain_id: str
    contract_address: str

    class Config:
        from_attributes = True


class Auction(BaseModel):
    """Auction record"""
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

    class Config:
        from_attributes = True


class Bid(BaseModel):
    """Bid on an auction"""
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

    class Config:
        from_attributes = True


class Price(BaseModel):
    """Fee token price derived from an active auction"""
    auction_id: int
    unit_price_in_usomm: int
    token_decimals: int
    token_contract: str
    token_symbol: str


# ===== RESPONSE ENVELOPES =====

class CirculatingSupplyResponse(BaseModel):
    circulating_supply: int


class AuctionsResponse(BaseModel):
    auctions: List[Auction]


class AuctionResponse(BaseModel):
    auction: Optional[Auction] = None


class BidsResponse(BaseModel):
    bids: List[Bid]


class PricesResponse(BaseModel):
    prices: List[Price]
