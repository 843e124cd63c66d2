"""Operator-facing operations: full crawl, incremental sync and state reset."""

import time
from datetime import datetime, timezone
from typing import Any, Callable

import structlog

from drive_registry.crawl.governor import TimeBudget
from drive_registry.crawl.traversal import FrontierTraversal
from drive_registry.errors import RegistryError
from drive_registry.models.config import AppConfig
from drive_registry.models.entities import FrontierQueue
from drive_registry.models.reports import CrawlReport, RunStatus, SyncReport
from drive_registry.providers import (
    get_checkpoint_store,
    get_credentials,
    get_output_sink,
    get_remote_adapter,
)
from drive_registry.remote.base import RemoteAdapter
from drive_registry.remote.errors import RemoteError
from drive_registry.storage.checkpoint_store import CURSOR_KEY, QUEUE_KEY, CheckpointStore
from drive_registry.storage.output_sink import OutputSink
from drive_registry.storage.row_buffer import RowBuffer
from drive_registry.sync.change_sync import ChangeSync
from drive_registry.sync.cursor_recovery import CursorRecovery, acquire_fresh_cursor
from drive_registry.utils.logging_config import bind_run_context
from drive_registry.utils.retry import BackoffRetrier

log = structlog.stdlib.get_logger()


class RegistryService:
    """Wires the engines to their collaborators for one tracked tree.

    Each public operation is one time-bounded run. Fatal conditions are
    written to the error log and the status indicator and reported as a
    FAILED run rather than raised.
    """

    def __init__(
        self,
        config: AppConfig,
        remote: RemoteAdapter,
        checkpoint: CheckpointStore,
        sink: OutputSink,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self._remote = remote
        self._checkpoint = checkpoint
        self._sink = sink
        self._sleep = sleep
        self._clock = clock
        self._root_id = config.drive.root_folder_id
        self._retry = BackoffRetrier(max_attempts=config.run.max_attempts, sleep=sleep)

    @classmethod
    def from_config(cls, config: AppConfig) -> "RegistryService":
        """Build a service with the default providers."""
        credentials = get_credentials(config.drive)
        return cls(
            config,
            remote=get_remote_adapter(config, credentials),
            checkpoint=get_checkpoint_store(config),
            sink=get_output_sink(config, credentials),
        )

    def run_full_crawl(self) -> CrawlReport:
        """Start or resume the full crawl for one time-bounded run."""
        bind_run_context("crawl", self._root_id)
        budget = TimeBudget(self._config.run.time_budget_seconds, clock=self._clock)
        self._set_status("Full crawl running...")

        traversal = FrontierTraversal(
            self._remote, self._checkpoint, self._sink, self._retry, self._root_id
        )
        try:
            report = traversal.run(budget)
        except Exception as e:
            report = CrawlReport(root_id=self._root_id, start_time=datetime.now(timezone.utc))
            return self._fail(report, e)

        if report.status is RunStatus.COMPLETED:
            self._set_status(
                f"Crawl complete: {report.folders_added} folders and "
                f"{report.files_added} files added"
            )
        else:
            self._set_status(
                f"Crawl paused: {report.queue_remaining} folders queued. Run the crawl again to continue."
            )
        log.info("full_crawl_run_finished", status=report.status.value, errors=len(report.errors))
        return report

    def run_incremental_sync(self) -> SyncReport:
        """Apply pending remote changes for one time-bounded run."""
        bind_run_context("sync", self._root_id)
        budget = TimeBudget(self._config.run.time_budget_seconds, clock=self._clock)
        self._set_status("Incremental sync running...")

        recovery = CursorRecovery(
            self._remote,
            self._retry,
            lag_wait_seconds=self._config.run.lag_wait_seconds,
            max_lag_waits=self._config.run.max_lag_waits,
            sleep=self._sleep,
        )
        sync = ChangeSync(
            self._remote,
            self._checkpoint,
            self._sink,
            self._retry,
            recovery,
            self._root_id,
            max_cursor_recoveries=self._config.run.max_cursor_recoveries,
        )
        try:
            report = sync.run(budget)
        except Exception as e:
            report = SyncReport(root_id=self._root_id, start_time=datetime.now(timezone.utc))
            return self._fail(report, e)

        if report.status is RunStatus.INTERRUPTED:
            self._set_status("Sync interrupted; the next run resumes from the same cursor.")
        elif report.has_changes:
            self._set_status(
                f"Sync complete: {report.added} added, {report.updated} updated, "
                f"{report.removed} removed"
            )
        else:
            self._set_status("Sync complete: no changes")
        log.info("incremental_sync_run_finished", status=report.status.value, changes=report.total_changes)
        return report

    def reset_state(self) -> str:
        """
        Clear the frontier queue and issue a fresh sync cursor.

        Returns:
            The new cursor

        Raises:
            RemoteError: If no fresh cursor could be obtained
        """
        bind_run_context("reset", self._root_id)
        self._checkpoint.delete(QUEUE_KEY)
        try:
            cursor = acquire_fresh_cursor(self._remote, self._retry)
        except RemoteError as e:
            self._record_error("reset_state", str(e))
            self._set_status(f"ERROR: reset failed: {e}")
            raise

        self._checkpoint.set(CURSOR_KEY, cursor)
        self._set_status("State reset: frontier cleared and a fresh cursor issued.")
        log.info("state_reset", cursor=cursor)
        return cursor

    def describe_state(self) -> dict[str, Any]:
        """Summarize the persisted checkpoint."""
        queue = FrontierQueue.from_blob(self._checkpoint.get(QUEUE_KEY))
        cursor = self._checkpoint.get(CURSOR_KEY)
        return {
            "root_id": self._root_id,
            "crawl_in_progress": bool(queue),
            "queue_length": len(queue),
            "has_cursor": cursor is not None,
            "cursor": cursor,
        }

    def _fail(self, report: Any, error: Exception) -> Any:
        location = error.location if isinstance(error, RegistryError) else "run"
        log.error("run_failed", location=location, error=str(error), exc_info=not isinstance(error, RegistryError))
        self._record_error(location, str(error))
        self._set_status(f"ERROR: {error}")

        report.status = RunStatus.FAILED
        report.errors.append(str(error))
        report.end_time = datetime.now(timezone.utc)
        return report

    def _record_error(self, location: str, message: str) -> None:
        buffer = RowBuffer()
        buffer.add_error(location, message)
        try:
            buffer.flush(self._sink)
        except Exception as e:
            log.error("error_row_not_written", location=location, error=str(e))

    def _set_status(self, message: str) -> None:
        """Overwrite the status cell; an unreachable sink is only logged."""
        try:
            self._sink.set_status(message)
        except Exception as e:
            log.error("status_update_failed", status=message, error=str(e))
