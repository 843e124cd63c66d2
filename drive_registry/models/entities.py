"""Pydantic models for remote entities, change records and registry rows."""

import json
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Iterable, Iterator

from pydantic import BaseModel, Field

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class EntityKind(str, Enum):
    """Kind of a node in the remote tree."""

    FOLDER = "Folder"
    FILE = "File"


class ChangeKind(str, Enum):
    """Kind of a change-log entry."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    REMOVED_FOLDER = "removed-folder"


class NodeRef(BaseModel):
    """A folder waiting in the frontier queue."""

    id: str = Field(default=..., min_length=1, description="Stable remote identifier")
    name: str = Field(default="", description="Folder name at discovery time")

    model_config = {"frozen": True}


class RemoteEntity(BaseModel):
    """Represents a file or folder as reported by the remote tree."""

    id: str = Field(default=..., min_length=1, description="Stable remote identifier")
    name: str = Field(default="", description="Entity name")
    kind: EntityKind = Field(default=..., description="Folder or File")
    parent_ids: list[str] = Field(default_factory=list, description="Declared parent ids")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    modified_at: datetime | None = Field(default=None, description="Last modification timestamp")
    owner: str = Field(default="", description="Owner email address")
    mime_type: str = Field(default="", description="Remote MIME type")
    view_url: str = Field(default="", description="Browser URL for the entity")

    @property
    def is_folder(self) -> bool:
        return self.kind is EntityKind.FOLDER

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "1AbCdEf",
                "name": "Quarterly report",
                "kind": "File",
                "parent_ids": ["0RootFolder"],
                "created_at": "2024-01-01T10:00:00Z",
                "modified_at": "2024-01-15T14:30:00Z",
                "owner": "jane.doe@example.com",
                "mime_type": "application/vnd.google-apps.document",
                "view_url": "https://docs.google.com/document/d/1AbCdEf/edit",
            }
        }
    }


class ChildrenPage(BaseModel):
    """One page of a folder listing."""

    entities: list[RemoteEntity] = Field(default_factory=list)
    next_page_token: str | None = None


class RemoteChange(BaseModel):
    """One entry of the remote change feed."""

    entity_id: str = Field(default=..., min_length=1)
    timestamp: datetime = Field(default=..., description="Time the change was recorded remotely")
    removed: bool = Field(default=False)
    entity: RemoteEntity | None = Field(default=None, description="Entity state after the change")


class ChangePage(BaseModel):
    """One page of the change feed.

    ``new_cursor`` is only reported on the last page, and may be missing
    even there when nothing changed.
    """

    changes: list[RemoteChange] = Field(default_factory=list)
    next_page_token: str | None = None
    new_cursor: str | None = None


class EntityRow(BaseModel):
    """Row of the entity registry."""

    id: str
    name: str
    url: str
    mime_type: str
    parent_ids: list[str] = Field(default_factory=list)
    discovery_parent_name: str
    created_at: datetime | None = None
    modified_at: datetime | None = None
    owner: str = ""
    fetched_at: datetime

    def to_values(self) -> list[str]:
        """Flatten the row into spreadsheet cell values."""
        return [
            self.id,
            self.name,
            self.url,
            self.mime_type,
            ",".join(self.parent_ids),
            self.discovery_parent_name,
            self.created_at.isoformat() if self.created_at else "",
            self.modified_at.isoformat() if self.modified_at else "",
            self.owner,
            self.fetched_at.isoformat(),
        ]


class FolderRow(BaseModel):
    """Row of the folder registry."""

    id: str
    name: str

    def to_values(self) -> list[str]:
        return [self.id, self.name]


class ChangeRecord(BaseModel):
    """Row of the change log."""

    timestamp: datetime
    entity_id: str
    change_kind: ChangeKind
    entity_kind: EntityKind
    name: str | None = None

    def to_values(self) -> list[str]:
        return [
            self.timestamp.isoformat(),
            self.entity_id,
            self.change_kind.value,
            self.entity_kind.value,
            self.name or "",
        ]


class ErrorRecord(BaseModel):
    """Row of the error log."""

    timestamp: datetime
    location: str
    target_id: str = "N/A"
    message: str

    def to_values(self) -> list[str]:
        return [self.timestamp.isoformat(), self.location, self.target_id, self.message]


class FrontierQueue:
    """FIFO of folders discovered but not yet enumerated.

    The whole queue is persisted as one JSON blob so a checkpoint write is
    a single atomic value.
    """

    def __init__(self, nodes: Iterable[NodeRef] = ()):
        self._nodes: deque[NodeRef] = deque(nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[NodeRef]:
        return iter(self._nodes)

    def __bool__(self) -> bool:
        return bool(self._nodes)

    def peek(self) -> NodeRef:
        """Return the head node without removing it."""
        return self._nodes[0]

    def pop(self) -> NodeRef:
        """Remove and return the head node."""
        return self._nodes.popleft()

    def push(self, node: NodeRef) -> None:
        """Append a node at the tail."""
        self._nodes.append(node)

    def extend(self, nodes: Iterable[NodeRef]) -> None:
        self._nodes.extend(nodes)

    def to_blob(self) -> str:
        return json.dumps([node.model_dump() for node in self._nodes])

    @classmethod
    def from_blob(cls, blob: str | None) -> "FrontierQueue":
        """Rebuild a queue from its persisted form; empty or missing blobs give an empty queue."""
        if not blob:
            return cls()
        return cls(NodeRef(**item) for item in json.loads(blob))
