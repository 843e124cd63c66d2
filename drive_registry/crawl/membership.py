"""In-memory sets of entity ids already present in the registries."""

import structlog

from drive_registry.storage.output_sink import OutputSink

log = structlog.stdlib.get_logger()


class MembershipIndex:
    """Tracked file and folder ids for the duration of one run.

    The index is rebuilt from the output sink at the start of every run;
    it is never persisted on its own.
    Removal only drops an id from tracking; its registry row stays, so
    the index also remembers which ids already own a row.
    """

    def __init__(self, file_ids: set[str] | None = None, folder_ids: set[str] | None = None):
        self.file_ids: set[str] = set(file_ids or ())
        self.folder_ids: set[str] = set(folder_ids or ())
        self._file_rows: set[str] = set(self.file_ids)
        self._folder_rows: set[str] = set(self.folder_ids)

    @classmethod
    def from_sink(cls, sink: OutputSink) -> "MembershipIndex":
        """Cold rebuild from the entire persisted registries."""
        index = cls(sink.read_entity_ids(), sink.read_folder_ids())
        log.info(
            "membership_index_rebuilt",
            file_count=len(index.file_ids),
            folder_count=len(index.folder_ids),
        )
        return index

    def has_file(self, entity_id: str) -> bool:
        return entity_id in self.file_ids

    def has_folder(self, entity_id: str) -> bool:
        return entity_id in self.folder_ids

    def add_file(self, entity_id: str) -> bool:
        """Register a file id; returns False if it was already tracked."""
        if entity_id in self.file_ids:
            return False
        self.file_ids.add(entity_id)
        return True

    def add_folder(self, entity_id: str) -> bool:
        """Register a folder id; returns False if it was already tracked."""
        if entity_id in self.folder_ids:
            return False
        self.folder_ids.add(entity_id)
        return True

    def remove_file(self, entity_id: str) -> bool:
        if entity_id not in self.file_ids:
            return False
        self.file_ids.discard(entity_id)
        return True

    def remove_folder(self, entity_id: str) -> bool:
        if entity_id not in self.folder_ids:
            return False
        self.folder_ids.discard(entity_id)
        return True

    def claim_file_row(self, entity_id: str) -> bool:
        """True if no registry row exists yet for this file; marks it as written."""
        if entity_id in self._file_rows:
            return False
        self._file_rows.add(entity_id)
        return True

    def claim_folder_row(self, entity_id: str) -> bool:
        if entity_id in self._folder_rows:
            return False
        self._folder_rows.add(entity_id)
        return True

    def in_scope(self, parent_ids: list[str]) -> bool:
        """True if any declared parent is a tracked folder."""
        return not self.folder_ids.isdisjoint(parent_ids)
