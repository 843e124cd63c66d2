"""Incremental synchronization against the remote change feed."""

from drive_registry.sync.change_sync import SYNC_PARENT_SENTINEL, ChangeSync
from drive_registry.sync.cursor_recovery import (
    CursorRecovery,
    RecoveryOutcome,
    RecoveryState,
    acquire_fresh_cursor,
)

__all__ = [
    "SYNC_PARENT_SENTINEL",
    "ChangeSync",
    "CursorRecovery",
    "RecoveryOutcome",
    "RecoveryState",
    "acquire_fresh_cursor",
]
