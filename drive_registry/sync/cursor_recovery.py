"""Cursor acquisition and recovery from invalidated change-feed cursors."""

import time
from enum import Enum
from typing import Callable

import structlog
from pydantic import BaseModel

from drive_registry.remote.base import RemoteAdapter
from drive_registry.remote.errors import RemoteError
from drive_registry.utils.retry import BackoffRetrier

log = structlog.stdlib.get_logger()


def acquire_fresh_cursor(remote: RemoteAdapter, retry: BackoffRetrier) -> str:
    """Request a cursor at the current head of the change feed.

    Raises:
        RemoteError: If the request fails after retries
    """
    cursor = retry(remote.get_fresh_cursor, operation="get_fresh_cursor")
    log.info("fresh_cursor_acquired", cursor=cursor)
    return cursor


class RecoveryState(str, Enum):
    REQUESTING = "requesting"
    WAITING = "waiting"
    RECOVERED = "recovered"
    FAILED = "failed"


class RecoveryOutcome(BaseModel):
    """Terminal state of one recovery attempt."""

    state: RecoveryState
    token: str | None = None
    error: str | None = None
    lag_waits: int = 0

    @property
    def recovered(self) -> bool:
        return self.state is RecoveryState.RECOVERED


class CursorRecovery:
    """
    Obtains a replacement for a cursor the change feed rejected.

    A fresh token that differs from the failed one is adopted immediately.
    A fresh token equal to the failed one means the remote side has not
    caught up yet: wait ``lag_wait_seconds`` and hand the same token back
    for one more identical fetch. With ``max_lag_waits`` above 1 the fresh
    token is re-requested after each wait until it changes or the waits
    run out.
    """

    def __init__(
        self,
        remote: RemoteAdapter,
        retry: BackoffRetrier,
        lag_wait_seconds: float = 5.0,
        max_lag_waits: int = 1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._remote = remote
        self._retry = retry
        self._lag_wait_seconds = lag_wait_seconds
        self._max_lag_waits = max(1, max_lag_waits)
        self._sleep = sleep

    def recover(self, failed_token: str) -> RecoveryOutcome:
        """
        Run the recovery state machine for ``failed_token``.

        Returns:
            RecoveryOutcome in state RECOVERED (with the token to use next)
            or FAILED (the caller must abort without touching the cursor)
        """
        state = RecoveryState.REQUESTING
        lag_waits = 0
        log.warning("cursor_recovery_started", failed_token=failed_token)

        while True:
            try:
                fresh = acquire_fresh_cursor(self._remote, self._retry)
            except RemoteError as e:
                log.error("cursor_recovery_failed", failed_token=failed_token, error=str(e))
                return RecoveryOutcome(state=RecoveryState.FAILED, error=str(e), lag_waits=lag_waits)

            if fresh != failed_token:
                log.info("cursor_recovered", failed_token=failed_token, token=fresh)
                return RecoveryOutcome(state=RecoveryState.RECOVERED, token=fresh, lag_waits=lag_waits)

            state = RecoveryState.WAITING
            lag_waits += 1
            log.warning(
                "cursor_unchanged_waiting",
                token=fresh,
                wait_seconds=self._lag_wait_seconds,
                lag_waits=lag_waits,
                state=state.value,
            )
            self._sleep(self._lag_wait_seconds)

            if lag_waits >= self._max_lag_waits:
                return RecoveryOutcome(state=RecoveryState.RECOVERED, token=fresh, lag_waits=lag_waits)

