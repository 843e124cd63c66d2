"""Per-unit-of-work buffer of rows awaiting a flush to the output sink."""

from datetime import datetime, timezone

import structlog

from drive_registry.models.entities import ChangeRecord, EntityRow, ErrorRecord, FolderRow
from drive_registry.storage.output_sink import OutputSink

log = structlog.stdlib.get_logger()


class RowBuffer:
    """Collects rows produced while processing one node or one change page.

    Flushing after every unit of work keeps the sink consistent with the
    in-memory membership index at every possible termination point.
    """

    def __init__(self) -> None:
        self.entities: list[EntityRow] = []
        self.folders: list[FolderRow] = []
        self.changes: list[ChangeRecord] = []
        self.errors: list[ErrorRecord] = []

    def __len__(self) -> int:
        return len(self.entities) + len(self.folders) + len(self.changes) + len(self.errors)

    def add_error(self, location: str, message: str, target_id: str | None = None) -> ErrorRecord:
        record = ErrorRecord(
            timestamp=datetime.now(timezone.utc),
            location=location,
            target_id=target_id or "N/A",
            message=message,
        )
        self.errors.append(record)
        return record

    def flush(self, sink: OutputSink) -> int:
        """
        Write every buffered row to ``sink`` and clear the buffer.

        Returns:
            Number of rows written
        """
        written = len(self)

        # Each table is cleared as soon as it is written so a failed append
        # never re-sends rows that already reached the sink.
        if self.folders:
            sink.append_folders(self.folders)
            self.folders = []
        if self.entities:
            sink.append_entities(self.entities)
            self.entities = []
        if self.changes:
            sink.append_changes(self.changes)
            self.changes = []
        if self.errors:
            sink.append_errors(self.errors)
            self.errors = []

        if written:
            log.debug("buffer_flushed", rows=written)
        return written
