"""
Fetch-transform-store for one feed.

A refresher queries one of several redundant endpoints through the retry
policy, turns the raw payload into the feed's value, and installs it in the
cache store together with a new expiration. The fetch and transform run
outside any cache lock; only the final swap takes the feed's write lock.
On failure nothing is written, so readers keep seeing the previous value
and its original expiration.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

from ..cache import CacheFeed, CacheStore, Feed, get_cache_feed
from ..chain.client import ChainClient, ClientFactory
from ..retry import RetryPolicy


class Refresher(ABC):
    """Base class for per-feed refreshers."""

    feed: Feed
    description: str = "feed"

    def __init__(
        self,
        store: CacheStore,
        client_factory: ClientFactory,
        endpoints: Sequence[str],
        retry_policy: RetryPolicy,
        ttl_seconds: float,
    ):
        self.store = store
        self.client_factory = client_factory
        self.endpoints = list(endpoints)
        self.retry_policy = retry_policy
        self.ttl_seconds = ttl_seconds
        self.logger = logging.getLogger(f"refresh.{self.feed.value}")

    @property
    def cache_feed(self) -> CacheFeed:
        return get_cache_feed(self.feed)

    def fetch(self, client: ChainClient) -> Any:
        """
        Query one endpoint for the feed's raw payload.

        Used by the default run(). Refreshers that override run() to issue
        several queries per cycle do not need it.
        """
        raise NotImplementedError(f"{type(self).__name__} does not fetch in a single query")

    @abstractmethod
    def transform(self, raw: Any) -> Mapping[Any, Any]:
        """Turn the raw payload into the feed's value."""
        pass

    def install(self, value: Mapping[Any, Any]) -> None:
        self.store.write(self.cache_feed, value, self.ttl_seconds)

    def query(self, operation, description: str) -> Any:
        """Run ``operation(client)`` against the endpoints with retry."""
        return self.retry_policy.run(
            self.endpoints,
            lambda endpoint: operation(self.client_factory(endpoint)),
            description,
        )

    def run(self) -> None:
        """
        One refresh cycle.

        Raises:
            ExhaustedRetriesError: If no endpoint answered
            DecodeError: If the payload could not be transformed
        """
        raw = self.query(self.fetch, self.description)
        value = self.transform(raw)
        self.install(value)
        self.logger.info(f"Updated {self.description} ({len(value)} entries)")

    def refresh(self) -> bool:
        """
        Run one cycle, logging instead of raising.

        Returns:
            True if the cache was updated
        """
        try:
            self.run()
            return True
        except Exception as e:
            self.logger.error(f"Failed to refresh {self.description}: {e}")
            return False


class BalanceRefresher(Refresher):
    """Refresher owning a subset of the shared balances mapping."""

    def __init__(self, *args, denom: str = "usomm", **kwargs):
        super().__init__(*args, **kwargs)
        self.denom = denom

    def install(self, value: Mapping[Any, Any]) -> None:
        self.store.merge(self.cache_feed, value, self.ttl_seconds)
