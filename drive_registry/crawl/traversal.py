"""Breadth-first frontier traversal of the remote tree."""

from datetime import datetime, timezone
from functools import partial

import structlog

from drive_registry.crawl.governor import TimeBudget
from drive_registry.crawl.membership import MembershipIndex
from drive_registry.errors import RootNotFoundError
from drive_registry.models.entities import EntityRow, FolderRow, FrontierQueue, NodeRef, RemoteEntity
from drive_registry.models.reports import CrawlReport, RunStatus, StepResult, StepStatus
from drive_registry.remote.base import RemoteAdapter
from drive_registry.remote.errors import RemoteError
from drive_registry.remote.urls import derive_view_url
from drive_registry.storage.checkpoint_store import CURSOR_KEY, QUEUE_KEY, CheckpointStore
from drive_registry.storage.output_sink import OutputSink
from drive_registry.storage.row_buffer import RowBuffer
from drive_registry.sync.cursor_recovery import acquire_fresh_cursor
from drive_registry.utils.retry import BackoffRetrier

log = structlog.stdlib.get_logger()


class FrontierTraversal:
    """Crawls the tree under a root folder across time-bounded runs.

    The frontier queue is the only traversal state that survives between
    runs. The folder at the head of the queue stays there until its
    enumeration finishes, so a run that stops mid-folder leaves it to be
    listed again from page one by the next run. Folders discovered while
    listing are appended to the tail only once the listing finishes.
    """

    def __init__(
        self,
        remote: RemoteAdapter,
        checkpoint: CheckpointStore,
        sink: OutputSink,
        retry: BackoffRetrier,
        root_id: str,
    ):
        """
        Initialize the traversal engine.

        Args:
            remote: Adapter for the remote tree
            checkpoint: Store holding the frontier queue and the sync cursor
            sink: Output sink for registry rows
            retry: Retry wrapper applied to every remote call
            root_id: Id of the tracked root folder
        """
        self._remote = remote
        self._checkpoint = checkpoint
        self._sink = sink
        self._retry = retry
        self._root_id = root_id

    def run(self, budget: TimeBudget) -> CrawlReport:
        """
        Continue (or start) the crawl until the frontier empties or the budget runs out.

        Args:
            budget: Deadline for this run

        Returns:
            CrawlReport with status COMPLETED or INTERRUPTED

        Raises:
            RootNotFoundError: If a new crawl cannot resolve the root folder
            CheckpointWriteError: If the checkpoint cannot be written
        """
        report = CrawlReport(root_id=self._root_id, start_time=datetime.now(timezone.utc))
        index = MembershipIndex.from_sink(self._sink)
        buffer = RowBuffer()
        queue = FrontierQueue.from_blob(self._checkpoint.get(QUEUE_KEY))

        if queue:
            log.info("crawl_resumed", queue_length=len(queue), head_id=queue.peek().id)
            if not index.has_folder(self._root_id):
                # The root row of an earlier run never reached the sink.
                self._seed_root(index, buffer, report)
        else:
            queue.push(self._seed_root(index, buffer, report))
            log.info("crawl_started", root_id=self._root_id)

        try:
            while queue:
                if budget.exceeded():
                    break

                node = queue.peek()
                discovered: list[NodeRef] = []
                result = self._enumerate_node(node, discovered, index, buffer, budget, report)
                buffer.flush(self._sink)

                if result.status is StepStatus.INTERRUPTED:
                    log.info("crawl_interrupted_mid_node", node_id=node.id, node_name=node.name)
                    break

                queue.pop()
                queue.extend(discovered)
                if result.status is StepStatus.FAILED:
                    report.nodes_failed += 1
                    report.errors.append(f"{node.id}: {result.error}")
                else:
                    report.nodes_processed += 1
        except Exception as e:
            # Anything escaping a node keeps the frontier for the next run.
            log.error("crawl_aborted", error=str(e), queue_length=len(queue), exc_info=True)
            buffer.add_error("crawl", str(e))
            report.errors.append(f"crawl aborted: {e}")

        if queue:
            self._checkpoint.set(QUEUE_KEY, queue.to_blob())
            self._flush_remaining(buffer, report)
            report.status = RunStatus.INTERRUPTED
            report.queue_remaining = len(queue)
            log.info(
                "crawl_checkpointed",
                queue_length=len(queue),
                nodes_processed=report.nodes_processed,
                elapsed_seconds=round(budget.elapsed(), 3),
            )
        else:
            self._flush_remaining(buffer, report)
            self._complete(buffer, report)

        return self._finish(report)

    def _seed_root(self, index: MembershipIndex, buffer: RowBuffer, report: CrawlReport) -> NodeRef:
        try:
            root = self._retry(partial(self._remote.get_node, self._root_id), operation="get_node")
        except RemoteError as e:
            log.error("root_unavailable", root_id=self._root_id, kind=e.kind.value, error=str(e))
            raise RootNotFoundError(f"Root folder {self._root_id} is not accessible: {e}") from e

        if not root.is_folder:
            raise RootNotFoundError(f"Root {self._root_id} is not a folder")

        if index.add_folder(root.id):
            buffer.folders.append(FolderRow(id=root.id, name=root.name))
            report.folders_added += 1
        return NodeRef(id=root.id, name=root.name)

    def _enumerate_node(
        self,
        node: NodeRef,
        discovered: list[NodeRef],
        index: MembershipIndex,
        buffer: RowBuffer,
        budget: TimeBudget,
        report: CrawlReport,
    ) -> StepResult:
        """List every page of ``node`` and register unseen children.

        Subfolders seen during the listing are collected in ``discovered``;
        the caller enqueues them once the rows are flushed.
        """
        page_token: str | None = None

        try:
            while True:
                page = self._retry(
                    partial(self._remote.list_children, node.id, page_token),
                    operation="list_children",
                )
                if budget.exceeded():
                    return StepResult.interrupted()

                for entity in page.entities:
                    self._register_child(entity, node, index, buffer, discovered, report)
                    if budget.exceeded():
                        return StepResult.interrupted()

                page_token = page.next_page_token
                if not page_token:
                    break
        except RemoteError as e:
            log.warning(
                "node_skipped",
                node_id=node.id,
                node_name=node.name,
                kind=e.kind.value,
                error=str(e),
            )
            buffer.add_error("enumerate_node", str(e), target_id=node.id)
            return StepResult.failed(str(e), target_id=node.id)

        log.debug("node_enumerated", node_id=node.id, subfolders=len(discovered))
        return StepResult.proceed()

    def _register_child(
        self,
        entity: RemoteEntity,
        parent: NodeRef,
        index: MembershipIndex,
        buffer: RowBuffer,
        discovered: list[NodeRef],
        report: CrawlReport,
    ) -> None:
        if entity.is_folder:
            discovered.append(NodeRef(id=entity.id, name=entity.name))
            if index.add_folder(entity.id):
                buffer.folders.append(FolderRow(id=entity.id, name=entity.name))
                report.folders_added += 1
            return

        if index.add_file(entity.id):
            buffer.entities.append(
                EntityRow(
                    id=entity.id,
                    name=entity.name,
                    url=derive_view_url(entity.id, entity.mime_type),
                    mime_type=entity.mime_type,
                    parent_ids=entity.parent_ids,
                    discovery_parent_name=parent.name,
                    created_at=entity.created_at,
                    modified_at=entity.modified_at,
                    owner=entity.owner,
                    fetched_at=datetime.now(timezone.utc),
                )
            )
            report.files_added += 1

    def _complete(self, buffer: RowBuffer, report: CrawlReport) -> None:
        """Drop the finished frontier and establish the baseline cursor for sync runs."""
        self._checkpoint.delete(QUEUE_KEY)
        report.status = RunStatus.COMPLETED
        report.queue_remaining = 0

        try:
            cursor = acquire_fresh_cursor(self._remote, self._retry)
        except RemoteError as e:
            log.error("baseline_cursor_failed", error=str(e))
            buffer.add_error("acquire_cursor", str(e))
            self._flush_remaining(buffer, report)
            report.errors.append(f"cursor acquisition failed: {e}")
            return

        self._checkpoint.set(CURSOR_KEY, cursor)
        report.cursor_established = True
        log.info(
            "crawl_completed",
            nodes_processed=report.nodes_processed,
            folders_added=report.folders_added,
            files_added=report.files_added,
        )

    def _flush_remaining(self, buffer: RowBuffer, report: CrawlReport) -> None:
        """Write leftover rows; a sink that is still failing is only logged."""
        try:
            buffer.flush(self._sink)
        except Exception as e:
            log.error("final_flush_failed", error=str(e), rows_dropped=len(buffer))
            report.errors.append(f"sink write failed: {e}")

    def _finish(self, report: CrawlReport) -> CrawlReport:
        report.end_time = datetime.now(timezone.utc)
        report.duration_seconds = (report.end_time - report.start_time).total_seconds()
        return report
