"""
Jittered exponential backoff across redundant endpoints.

One attempt is a sweep over every endpoint in the order given; the first
endpoint that answers wins. When a whole sweep fails we sleep
``base * 2**attempt`` plus a uniform jitter in ``[0, base)`` and sweep again,
up to ``max_retries`` extra sweeps. Transient and permanent upstream errors
are retried alike.
"""
import logging
import time
from typing import Callable, Sequence, TypeVar

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .errors import EndpointError, ExhaustedRetriesError

logger = logging.getLogger("retry")

T = TypeVar("T")


class RetryPolicy:
    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            max_retries: Extra sweeps after the first one (R); R + 1 sweeps total
            base_delay: Backoff base in seconds, also the jitter range
            sleep: Sleep function, replaceable in tests
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def run(
        self,
        endpoints: Sequence[str],
        operation: Callable[[str], T],
        description: str = "query",
    ) -> T:
        """
        Call ``operation(endpoint)`` until one endpoint succeeds.

        Returns:
            The value of the first successful call

        Raises:
            ExhaustedRetriesError: If every sweep failed
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2)
            + wait_random(0, self.base_delay),
            retry=retry_if_exception_type(EndpointError),
            sleep=self._sleep,
            before_sleep=self._log_backoff,
        )
        try:
            return retrying(self._sweep, endpoints, operation, description)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            raise ExhaustedRetriesError(
                f"failed to query {description} from all endpoints "
                f"after {self.max_retries + 1} attempts",
                last_error,
            ) from last_error

    @staticmethod
    def _sweep(
        endpoints: Sequence[str],
        operation: Callable[[str], T],
        description: str,
    ) -> T:
        last_error = None
        for endpoint in endpoints:
            try:
                return operation(endpoint)
            except Exception as e:
                logger.warning(f"Error querying {description} from {endpoint}: {e}")
                last_error = e

        if last_error is None:
            raise EndpointError("<none>", "no endpoints to query")
        if isinstance(last_error, EndpointError):
            raise last_error
        raise EndpointError(endpoints[-1], str(last_error)) from last_error

    @staticmethod
    def _log_backoff(retry_state: RetryCallState) -> None:
        logger.debug(
            f"All endpoints failed on attempt {retry_state.attempt_number}, "
            f"retrying in {retry_state.next_action.sleep:.2f}s"
        )
