"""
Background polling and on-demand refresh of feeds.

Every feed gets its own daemon thread that refreshes, then sleeps for the
feed's period, forever. Read paths can also ask for an inline refresh when
a feed is stale (or, for ended auctions, empty). Both paths go through one
single-flight coalescer per feed, so a feed never has two refreshes running
at once.
"""
import logging
import threading
from typing import Dict, Iterable, Mapping, Optional

from .cache import (
    CacheStore,
    Feed,
    LazyRefresh,
    RefreshCoalescer,
    get_cache_feed,
    get_lazy_policy,
)
from .refresh import Refresher

logger = logging.getLogger("scheduler")

# Feeds recomputed right after another feed refreshes successfully
DEPENDENT_FEEDS: Dict[Feed, tuple] = {
    Feed.ACTIVE_AUCTIONS: (Feed.PRICES,),
}


class Scheduler:
    """
    Owns the refresh lifecycle of every feed.

    Usage:
        scheduler = Scheduler(store, refreshers, periods)
        scheduler.start()
        ...
        scheduler.refresh_if_stale(Feed.ACTIVE_AUCTIONS)
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        store: CacheStore,
        refreshers: Mapping[Feed, Refresher],
        periods: Mapping[Feed, float],
        coalescer: Optional[RefreshCoalescer] = None,
    ):
        self.store = store
        self._refreshers = dict(refreshers)
        self._periods = dict(periods)
        self._coalescer = coalescer or RefreshCoalescer()
        self._stop = threading.Event()
        self._threads: Dict[Feed, threading.Thread] = {}

    # ------------------------------------------------------------------
    # Refresh entry points
    # ------------------------------------------------------------------

    def refresh(self, feed: Feed) -> bool:
        """
        Refresh a feed now, or join the refresh already running for it.

        Returns:
            True if the refresh that ran (ours or the joined one) succeeded
        """
        return self._coalescer.run(feed, lambda: self._run(feed))

    def refresh_if_stale(self, feed: Feed) -> bool:
        """
        Refresh inline if the feed is stale and wait for it.

        Returns:
            True if the feed was fresh or the refresh succeeded
        """
        cache_feed = get_cache_feed(feed)
        if not self.store.is_stale(cache_feed):
            return True

        # The feed may have been refreshed between our check and the
        # coalescer picking us as initiator; check again inside.
        def run_if_still_stale() -> bool:
            if not self.store.is_stale(cache_feed):
                return True
            return self._run(feed)

        return self._coalescer.run(feed, run_if_still_stale)

    def refresh_if_empty(self, feed: Feed) -> bool:
        """
        Refresh inline only if the feed holds no data at all.

        Returns:
            True if the feed had data or the refresh succeeded
        """
        cache_feed = get_cache_feed(feed)
        if not self.store.is_empty(cache_feed):
            return True

        def run_if_still_empty() -> bool:
            if not self.store.is_empty(cache_feed):
                return True
            return self._run(feed)

        return self._coalescer.run(feed, run_if_still_empty)

    def lazy_refresh(self, feed: Feed) -> bool:
        """Apply the feed's read-path refresh policy."""
        policy = get_lazy_policy(feed)
        if policy is LazyRefresh.IF_STALE:
            return self.refresh_if_stale(feed)
        if policy is LazyRefresh.IF_EMPTY:
            return self.refresh_if_empty(feed)
        return True

    def refresh_all(self, feeds: Iterable[Feed]) -> Dict[Feed, bool]:
        """Refresh several feeds one after another (startup sweep)."""
        return {feed: self.refresh(feed) for feed in feeds if feed in self._refreshers}

    def _run(self, feed: Feed) -> bool:
        ok = self._refreshers[feed].refresh()
        if ok:
            for dependent in DEPENDENT_FEEDS.get(feed, ()):
                if dependent in self._refreshers:
                    self.refresh(dependent)
        return ok

    # ------------------------------------------------------------------
    # Background polling
    # ------------------------------------------------------------------

    def run_forever(self, feed: Feed, period: float) -> None:
        """
        Poll loop for one feed: refresh, then sleep ``period`` seconds.

        Returns only once stop() is called.
        """
        logger.debug(f"Updating {feed.value} every {period} seconds")
        while not self._stop.is_set():
            try:
                self.refresh(feed)
            except Exception:
                logger.exception(f"Unexpected error in {feed.value} poll loop")
            if self._stop.wait(period):
                break
        logger.debug(f"Poll loop for {feed.value} stopped")

    def start(self) -> None:
        """Start one poll thread per feed."""
        self._stop.clear()
        for feed in self._refreshers:
            if feed in self._threads and self._threads[feed].is_alive():
                continue
            period = self._periods[feed]
            thread = threading.Thread(
                target=self.run_forever,
                args=(feed, period),
                name=f"poll-{feed.value}",
                daemon=True,
            )
            self._threads[feed] = thread
            thread.start()
        logger.info(f"Started {len(self._threads)} poll loops")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Signal every poll loop to exit and wait for them."""
        self._stop.set()
        for feed, thread in self._threads.items():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Poll loop for {feed.value} did not stop within {timeout}s")
        self._threads.clear()

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads.values())

    def get_stats(self) -> Dict[str, object]:
        return {
            "poll_loops": sorted(f.value for f, t in self._threads.items() if t.is_alive()),
            "coalescer": self._coalescer.get_stats(),
        }
