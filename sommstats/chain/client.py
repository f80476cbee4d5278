"""
Chain query client.

The refreshers depend only on the ChainClient protocol; RestChainClient
implements it against a Cosmos SDK REST (LCD) endpoint. One client is built
per endpoint, and endpoint selection is the retry policy's job.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

import requests

from ..errors import EndpointError

logger = logging.getLogger("chain.client")

BALANCE_PATH = "/cosmos/bank/v1beta1/balances/{address}/by_denom"
COMMUNITY_POOL_PATH = "/cosmos/distribution/v1beta1/community_pool"
STAKING_POOL_PATH = "/cosmos/staking/v1beta1/pool"
ACCOUNT_PATH = "/cosmos/auth/v1beta1/accounts/{address}"
ACTIVE_AUCTIONS_PATH = "/sommelier/auction/v1/active_auctions"
ENDED_AUCTIONS_PATH = "/sommelier/auction/v1/ended_auctions"
AUCTION_BIDS_PATH = "/sommelier/auction/v1/auction_bids/{auction_id}"


class ChainClient(Protocol):
    """
    Queries the refreshers need from a node.

    Every call may fail with EndpointError. Payloads are returned raw;
    decoding lives in ``sommstats.chain.decode``.
    """

    def query_balance(self, address: str, denom: str) -> Optional[Dict[str, Any]]:
        """Coin ``{denom, amount}`` held by ``address``."""
        ...

    def query_community_pool(self) -> List[Dict[str, Any]]:
        """DecCoins held by the community pool."""
        ...

    def query_staking_pool(self) -> Dict[str, Any]:
        """``{bonded_tokens, not_bonded_tokens}``."""
        ...

    def query_account_raw(self, address: str) -> Tuple[str, Dict[str, Any]]:
        """Account type URL and the account body."""
        ...

    def query_active_auctions(self) -> List[Dict[str, Any]]:
        ...

    def query_ended_auctions(self) -> List[Dict[str, Any]]:
        ...

    def query_auction_bids(self, auction_id: int) -> List[Dict[str, Any]]:
        ...


ClientFactory = Callable[[str], ChainClient]


class RestChainClient:
    """ChainClient over a node's REST API."""

    def __init__(
        self,
        endpoint: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def __repr__(self) -> str:
        return f"RestChainClient({self.endpoint!r})"

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.endpoint}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise EndpointError(self.endpoint, f"GET {path} failed: {e}") from e

        if not isinstance(body, dict):
            raise EndpointError(self.endpoint, f"GET {path} returned a non-object body")
        logger.debug(f"GET {url} ok")
        return body

    def query_balance(self, address: str, denom: str) -> Optional[Dict[str, Any]]:
        body = self._get(BALANCE_PATH.format(address=address), params={"denom": denom})
        return body.get("balance")

    def query_community_pool(self) -> List[Dict[str, Any]]:
        return self._get(COMMUNITY_POOL_PATH).get("pool") or []

    def query_staking_pool(self) -> Dict[str, Any]:
        return self._get(STAKING_POOL_PATH).get("pool") or {}

    def query_account_raw(self, address: str) -> Tuple[str, Dict[str, Any]]:
        account = self._get(ACCOUNT_PATH.format(address=address)).get("account") or {}
        return account.get("@type", ""), account

    def query_active_auctions(self) -> List[Dict[str, Any]]:
        return self._get(ACTIVE_AUCTIONS_PATH).get("auctions") or []

    def query_ended_auctions(self) -> List[Dict[str, Any]]:
        return self._get(ENDED_AUCTIONS_PATH).get("auctions") or []

    def query_auction_bids(self, auction_id: int) -> List[Dict[str, Any]]:
        return self._get(AUCTION_BIDS_PATH.format(auction_id=auction_id)).get("bids") or []


def rest_client_factory(timeout: float = 10.0) -> ClientFactory:
    """Factory building one RestChainClient per endpoint, sharing a session."""
    session = requests.Session()

    def build(endpoint: str) -> ChainClient:
        return RestChainClient(endpoint, timeout=timeout, session=session)

    return build
