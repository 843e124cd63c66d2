"""Cursor-driven incremental synchronization against the remote change feed."""

from datetime import datetime, timezone
from functools import partial

import structlog

from drive_registry.crawl.governor import TimeBudget
from drive_registry.crawl.membership import MembershipIndex
from drive_registry.errors import MissingCursorError
from drive_registry.models.entities import (
    ChangeKind,
    ChangeRecord,
    EntityKind,
    EntityRow,
    FolderRow,
    RemoteChange,
)
from drive_registry.models.reports import RunStatus, StepResult, StepStatus, SyncReport
from drive_registry.remote.base import RemoteAdapter
from drive_registry.remote.errors import RemoteError, RemoteErrorKind
from drive_registry.remote.urls import derive_view_url
from drive_registry.storage.checkpoint_store import CURSOR_KEY, CheckpointStore
from drive_registry.storage.output_sink import OutputSink
from drive_registry.storage.row_buffer import RowBuffer
from drive_registry.sync.cursor_recovery import CursorRecovery
from drive_registry.utils.retry import BackoffRetrier

log = structlog.stdlib.get_logger()

# Entities first seen through the change feed have no discovering folder.
SYNC_PARENT_SENTINEL = "(change feed)"


class SyncState:
    """Mutable position of one sync run in the change feed."""

    def __init__(self, cursor: str):
        self.starting_cursor = cursor
        self.cursor = cursor
        self.page_token: str | None = cursor
        self.candidate_cursor: str | None = None
        self.recoveries = 0


class ChangeSync:
    """Applies the remote change feed to the registries.

    The persisted cursor only moves after a run has consumed the whole feed
    without interruption; any other outcome leaves it untouched so the next
    run replays from the same point. Replaying is safe because
    classification is idempotent against the membership index.
    """

    def __init__(
        self,
        remote: RemoteAdapter,
        checkpoint: CheckpointStore,
        sink: OutputSink,
        retry: BackoffRetrier,
        recovery: CursorRecovery,
        root_id: str,
        max_cursor_recoveries: int = 3,
    ):
        self._remote = remote
        self._checkpoint = checkpoint
        self._sink = sink
        self._retry = retry
        self._recovery = recovery
        self._root_id = root_id
        self._max_cursor_recoveries = max_cursor_recoveries

    def run(self, budget: TimeBudget) -> SyncReport:
        """
        Consume the change feed from the persisted cursor.

        Args:
            budget: Deadline for this run

        Returns:
            SyncReport with status COMPLETED or INTERRUPTED

        Raises:
            MissingCursorError: If no full crawl has established a cursor yet
            CheckpointWriteError: If the new cursor cannot be written
        """
        cursor = self._checkpoint.get(CURSOR_KEY)
        if not cursor:
            raise MissingCursorError(
                "No sync cursor found. Run a full crawl first to establish a baseline."
            )

        report = SyncReport(
            root_id=self._root_id,
            start_time=datetime.now(timezone.utc),
            starting_cursor=cursor,
        )
        index = MembershipIndex.from_sink(self._sink)
        state = SyncState(cursor)
        log.info("sync_started", cursor=cursor)

        interrupted = False
        while state.page_token is not None:
            try:
                result = self._sync_page(state, index, budget, report)
            except Exception as e:
                # A failed sink write ends the run before the cursor moves.
                log.error("sync_page_aborted", page_token=state.page_token, error=str(e), exc_info=True)
                result = StepResult.failed(f"sync aborted: {e}", target_id=state.page_token)

            if result.status is StepStatus.INTERRUPTED:
                interrupted = True
                break
            if result.status is StepStatus.FAILED:
                report.errors.append(result.error or "unknown error")
                interrupted = True
                break

        if interrupted or state.page_token is not None:
            report.status = RunStatus.INTERRUPTED
            log.info(
                "sync_interrupted",
                cursor_kept=state.starting_cursor,
                pages_processed=report.pages_processed,
            )
        else:
            new_cursor = state.candidate_cursor or state.cursor
            self._checkpoint.set(CURSOR_KEY, new_cursor)
            report.status = RunStatus.COMPLETED
            report.persisted_cursor = new_cursor
            log.info(
                "sync_completed",
                cursor=new_cursor,
                added=report.added,
                updated=report.updated,
                removed=report.removed,
                ignored=report.ignored,
            )

        report.end_time = datetime.now(timezone.utc)
        report.duration_seconds = (report.end_time - report.start_time).total_seconds()
        return report

    def _sync_page(
        self,
        state: SyncState,
        index: MembershipIndex,
        budget: TimeBudget,
        report: SyncReport,
    ) -> StepResult:
        """Fetch and apply one page of the change feed."""
        if budget.exceeded():
            return StepResult.interrupted()

        buffer = RowBuffer()
        try:
            page = self._retry(
                partial(self._remote.list_changes, state.cursor, state.page_token),
                operation="list_changes",
            )
        except RemoteError as e:
            if e.kind is RemoteErrorKind.INVALID_CURSOR:
                return self._recover(state, buffer, report)

            log.error("change_page_failed", page_token=state.page_token, kind=e.kind.value, error=str(e))
            buffer.add_error("list_changes", str(e), target_id=state.page_token)
            buffer.flush(self._sink)
            return StepResult.failed(str(e), target_id=state.page_token)

        if page.new_cursor:
            state.candidate_cursor = page.new_cursor

        interrupted = False
        for change in page.changes:
            if budget.exceeded():
                interrupted = True
                break
            report.changes_seen += 1
            self._classify(change, index, buffer, report)

        buffer.flush(self._sink)
        report.pages_processed += 1

        if interrupted:
            return StepResult.interrupted()

        state.page_token = page.next_page_token
        return StepResult.proceed()

    def _recover(self, state: SyncState, buffer: RowBuffer, report: SyncReport) -> StepResult:
        failed_token = state.page_token or state.cursor
        buffer.add_error("list_changes", "change cursor rejected; requesting a fresh cursor", failed_token)

        if state.recoveries >= self._max_cursor_recoveries:
            message = f"cursor still rejected after {state.recoveries} recoveries"
            log.error("cursor_recovery_exhausted", recoveries=state.recoveries)
            buffer.add_error("cursor_recovery", message, failed_token)
            buffer.flush(self._sink)
            return StepResult.failed(message, target_id=failed_token)

        state.recoveries += 1
        report.cursor_recoveries += 1
        outcome = self._recovery.recover(failed_token)

        if not outcome.recovered:
            buffer.add_error("cursor_recovery", outcome.error or "recovery failed", failed_token)
            buffer.flush(self._sink)
            return StepResult.failed(f"cursor recovery failed: {outcome.error}", target_id=failed_token)

        buffer.flush(self._sink)
        state.cursor = outcome.token
        state.page_token = outcome.token
        return StepResult.proceed()

    def _classify(
        self,
        change: RemoteChange,
        index: MembershipIndex,
        buffer: RowBuffer,
        report: SyncReport,
    ) -> None:
        """Apply one change record to the index and buffer its rows."""
        entity = change.entity

        if change.removed:
            name = entity.name if entity else None
            if index.remove_file(change.entity_id):
                kind, entity_kind = ChangeKind.REMOVED, EntityKind.FILE
            elif index.remove_folder(change.entity_id):
                kind, entity_kind = ChangeKind.REMOVED_FOLDER, EntityKind.FOLDER
            else:
                report.ignored += 1
                return
            buffer.changes.append(
                ChangeRecord(
                    timestamp=change.timestamp,
                    entity_id=change.entity_id,
                    change_kind=kind,
                    entity_kind=entity_kind,
                    name=name,
                )
            )
            report.removed += 1
            return

        if entity is None or not index.in_scope(entity.parent_ids):
            report.ignored += 1
            return

        if entity.is_folder:
            is_new = index.add_folder(entity.id)
            if is_new and index.claim_folder_row(entity.id):
                buffer.folders.append(FolderRow(id=entity.id, name=entity.name))
        else:
            is_new = index.add_file(entity.id)
            if is_new and index.claim_file_row(entity.id):
                buffer.entities.append(
                    EntityRow(
                        id=entity.id,
                        name=entity.name,
                        url=derive_view_url(entity.id, entity.mime_type),
                        mime_type=entity.mime_type,
                        parent_ids=entity.parent_ids,
                        discovery_parent_name=SYNC_PARENT_SENTINEL,
                        created_at=entity.created_at,
                        modified_at=entity.modified_at,
                        owner=entity.owner,
                        fetched_at=datetime.now(timezone.utc),
                    )
                )

        buffer.changes.append(
            ChangeRecord(
                timestamp=change.timestamp,
                entity_id=entity.id,
                change_kind=ChangeKind.ADDED if is_new else ChangeKind.UPDATED,
                entity_kind=entity.kind,
                name=entity.name,
            )
        )
        if is_new:
            report.added += 1
        else:
            report.updated += 1
