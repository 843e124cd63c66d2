"""Output sink interface and the in-memory implementation."""

from abc import ABC, abstractmethod
from typing import Sequence

from drive_registry.models.entities import ChangeRecord, EntityRow, ErrorRecord, FolderRow


class OutputSink(ABC):
    """Append-only writer for the four registry tables plus a status indicator.

    Rows are never amended or deleted once appended.
    """

    @abstractmethod
    def append_entities(self, rows: Sequence[EntityRow]) -> None:
        """Append rows to the entity registry."""

    @abstractmethod
    def append_folders(self, rows: Sequence[FolderRow]) -> None:
        """Append rows to the folder registry."""

    @abstractmethod
    def append_changes(self, rows: Sequence[ChangeRecord]) -> None:
        """Append rows to the change log."""

    @abstractmethod
    def append_errors(self, rows: Sequence[ErrorRecord]) -> None:
        """Append rows to the error log."""

    @abstractmethod
    def read_entity_ids(self) -> set[str]:
        """Return every id present in the entity registry."""

    @abstractmethod
    def read_folder_ids(self) -> set[str]:
        """Return every id present in the folder registry."""

    @abstractmethod
    def set_status(self, message: str) -> None:
        """Overwrite the human-visible status indicator."""


class InMemoryOutputSink(OutputSink):
    """Output sink keeping all tables in lists."""

    def __init__(self) -> None:
        self.entities: list[EntityRow] = []
        self.folders: list[FolderRow] = []
        self.changes: list[ChangeRecord] = []
        self.errors: list[ErrorRecord] = []
        self.status: str = ""
        self.status_history: list[str] = []

    def append_entities(self, rows: Sequence[EntityRow]) -> None:
        self.entities.extend(rows)

    def append_folders(self, rows: Sequence[FolderRow]) -> None:
        self.folders.extend(rows)

    def append_changes(self, rows: Sequence[ChangeRecord]) -> None:
        self.changes.extend(rows)

    def append_errors(self, rows: Sequence[ErrorRecord]) -> None:
        self.errors.extend(rows)

    def read_entity_ids(self) -> set[str]:
        return {row.id for row in self.entities}

    def read_folder_ids(self) -> set[str]:
        return {row.id for row in self.folders}

    def set_status(self, message: str) -> None:
        self.status = message
        self.status_history.append(message)
