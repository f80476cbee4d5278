"""
Exception hierarchy for the stats service.

Feed-level errors are raised by refreshers and caught at the refresher
boundary; only CacheUnpopulatedError reaches the HTTP layer on purpose.
"""
from typing import Optional


class SommStatsError(Exception):
    """Base class for all service errors."""
    pass


class EndpointError(SommStatsError):
    """A single upstream endpoint call failed (network, timeout, bad status)."""

    def __init__(self, endpoint: str, message: str):
        super().__init__(f"{endpoint}: {message}")
        self.endpoint = endpoint


class ExhaustedRetriesError(SommStatsError):
    """Every endpoint failed on every attempt."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        if last_error is not None:
            message = f"{message} (last error: {last_error})"
        super().__init__(message)
        self.last_error = last_error


class DecodeError(SommStatsError):
    """Upstream payload did not have the expected shape."""
    pass


class ConfigError(SommStatsError):
    """Invalid configuration, fatal at startup."""
    pass


class CacheUnpopulatedError(SommStatsError):
    """A read needs a cache key that has never been written."""

    def __init__(self, key: str):
        super().__init__(f"cache key {key!r} has not been populated yet")
        self.key = key
