"""Retry with exponential backoff for remote calls."""

import random
import time
from typing import Callable, TypeVar

import structlog

from drive_registry.remote.errors import RemoteError

log = structlog.stdlib.get_logger()

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
BASE_DELAY_SECONDS = 1.0
MAX_JITTER_SECONDS = 1.0


def backoff_delay(attempt: int, jitter: float) -> float:
    """Delay before the next try after zero-based ``attempt`` failed: 2^attempt s plus jitter."""
    return BASE_DELAY_SECONDS * (2**attempt) + jitter


class BackoffRetrier:
    """
    Executes remote-call thunks, retrying transient failures.

    This is the only retry point for remote calls; adapters and engines
    never retry on their own.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Callable[[], float] | None = None,
    ):
        """
        Initialize the retrier.

        Args:
            max_attempts: Total attempts per call, including the first one
            sleep: Blocking sleep function, replaceable in tests
            jitter: Source of the random extra delay in [0, 1) seconds
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._jitter = jitter or (lambda: random.uniform(0.0, MAX_JITTER_SECONDS))

    def __call__(self, func: Callable[[], T], operation: str = "remote_call") -> T:
        """
        Run ``func`` until it succeeds, a non-transient error occurs, or attempts run out.

        Args:
            func: Zero-argument callable performing one remote request
            operation: Name used in log events

        Returns:
            Whatever ``func`` returns

        Raises:
            RemoteError: The last transient error once attempts are exhausted,
                or any non-transient error immediately
        """
        last_error: RemoteError | None = None

        for attempt in range(self.max_attempts):
            try:
                return func()
            except RemoteError as e:
                if not e.is_transient:
                    raise
                last_error = e

                if attempt == self.max_attempts - 1:
                    log.error(
                        "max_retries_reached",
                        operation=operation,
                        max_attempts=self.max_attempts,
                        error=str(e),
                    )
                    break

                delay = backoff_delay(attempt, self._jitter())
                log.warning(
                    "retrying_after_error",
                    operation=operation,
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    delay_seconds=round(delay, 3),
                    error=str(e),
                )
                self._sleep(delay)

        if last_error:
            raise last_error
