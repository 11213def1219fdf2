"""Retry utilities with exponential backoff."""

import time
import random
from typing import Callable, TypeVar, Optional, Type, Tuple

from apex_batch.shared.logging import get_logger

T = TypeVar('T')

logger = get_logger(__name__)


class RetryStrategy:
    """Configurable retry strategy.

    Only used for idempotent reads (record queries). Script execution is
    never retried automatically.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        exponential: bool = True,
        jitter: bool = True,
        max_backoff: float = 60.0,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        sleep: Callable[[float], None] = time.sleep
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got: {max_attempts}")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.exponential = exponential
        self.jitter = jitter
        self.max_backoff = max_backoff
        self.retry_on = retry_on
        self._sleep = sleep

    def execute(
        self,
        func: Callable[..., T],
        *args,
        **kwargs
    ) -> T:
        """
        Execute a function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            Function result

        Raises:
            The last exception if all attempts fail. Exceptions outside
            ``retry_on`` are raised immediately.
        """
        last_exception: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except self.retry_on as e:
                last_exception = e

                if attempt == self.max_attempts:
                    raise

                wait_time = self._calculate_backoff(attempt)
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed: {e}; "
                    f"retrying in {wait_time:.1f}s"
                )
                self._sleep(wait_time)

        if last_exception:
            raise last_exception
        raise RuntimeError("Retry logic failed unexpectedly")

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate backoff time for given attempt number."""
        if self.exponential:
            wait_time = self.backoff_seconds * (2 ** (attempt - 1))
        else:
            wait_time = self.backoff_seconds * attempt

        # Cap at max_backoff
        wait_time = min(wait_time, self.max_backoff)

        if self.jitter:
            wait_time = wait_time * (0.5 + random.random())

        return wait_time
