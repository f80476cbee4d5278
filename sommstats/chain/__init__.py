"""
Chain access: query client, record models, and payload decoding.
"""
from .client import ChainClient, ClientFactory, RestChainClient, rest_client_factory
from .decode import TokenRegistry
from .models import Auction, Bid, FeeToken, Price

__all__ = [
    "ChainClient",
    "ClientFactory",
    "RestChainClient",
    "rest_client_factory",
    "TokenRegistry",
    "Auction",
    "Bid",
    "FeeToken",
    "Price",
]
