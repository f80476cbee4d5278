"""
Single-flight execution of feed refreshes.

At most one refresh per feed runs at a time. A caller that arrives while a
refresh of the same feed is in flight (the background loop or another
request) does not start a second one; it waits for the running one and
shares its outcome.
"""
import threading
import time
import logging
from typing import Dict, Optional, Callable, Any, Hashable
from dataclasses import dataclass, field

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightRefresh:
    """Tracks an in-progress refresh."""
    event: threading.Event = field(default_factory=threading.Event)
    result: Optional[Any] = None
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.time)
    waiter_count: int = 0


class RefreshCoalescer:
    """
    Keyed single-flight guard.

    Usage:
        coalescer = RefreshCoalescer()
        ok = coalescer.run(Feed.BIDS, refresher.refresh)
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Max seconds a joiner waits for the in-flight run.
                None waits until it completes.
        """
        self._in_flight: Dict[Hashable, InFlightRefresh] = {}
        self._lock = threading.Lock()
        self._timeout = timeout

    def run(self, key: Hashable, fn: Callable[[], Any]) -> Any:
        """
        Run ``fn`` for ``key`` unless a run is already in flight, in which
        case wait for that run and return its result.

        Raises:
            TimeoutError: If a joiner's wait exceeds the timeout
            Exception: Whatever ``fn`` raised, for the initiator and joiners
        """
        with self._lock:
            in_flight = self._in_flight.get(key)
            if in_flight is not None:
                in_flight.waiter_count += 1
                logger.debug(f"Joining in-flight refresh for {key} (waiters: {in_flight.waiter_count})")
                is_initiator = False
            else:
                in_flight = InFlightRefresh()
                self._in_flight[key] = in_flight
                is_initiator = True

        if is_initiator:
            try:
                in_flight.result = fn()
            except BaseException as e:
                in_flight.error = e
            finally:
                with self._lock:
                    self._in_flight.pop(key, None)
                in_flight.event.set()

            if in_flight.error is not None:
                raise in_flight.error
            return in_flight.result

        if not in_flight.event.wait(timeout=self._timeout):
            logger.error(f"Timeout waiting for in-flight refresh: {key}")
            raise TimeoutError(f"Refresh of {key} did not finish within {self._timeout}s")

        if in_flight.error is not None:
            raise in_flight.error
        return in_flight.result

    def is_running(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._in_flight

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "active_refreshes": len(self._in_flight),
                "active_keys": [str(k) for k in self._in_flight],
            }
