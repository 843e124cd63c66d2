"""Run reports and per-iteration step results."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    """Outcome of one time-bounded run."""

    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


class StepStatus(str, Enum):
    CONTINUE = "continue"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


class StepResult(BaseModel):
    """Result of one loop step (one node enumeration or one change page)."""

    status: StepStatus
    error: str | None = None
    target_id: str | None = None

    @classmethod
    def proceed(cls) -> "StepResult":
        return cls(status=StepStatus.CONTINUE)

    @classmethod
    def interrupted(cls) -> "StepResult":
        return cls(status=StepStatus.INTERRUPTED)

    @classmethod
    def failed(cls, error: str, target_id: str | None = None) -> "StepResult":
        return cls(status=StepStatus.FAILED, error=error, target_id=target_id)


class CrawlReport(BaseModel):
    """Report of a full-crawl run."""

    root_id: str = Field(..., description="Tracked root folder id")
    status: RunStatus = Field(default=RunStatus.COMPLETED)
    nodes_processed: int = Field(default=0, ge=0, description="Folders fully enumerated")
    nodes_failed: int = Field(default=0, ge=0, description="Folders skipped after errors")
    folders_added: int = Field(default=0, ge=0, description="New folder registry rows")
    files_added: int = Field(default=0, ge=0, description="New entity registry rows")
    queue_remaining: int = Field(default=0, ge=0, description="Folders left in the frontier")
    cursor_established: bool = Field(default=False, description="Fresh cursor persisted at completion")
    start_time: datetime = Field(..., description="Run start timestamp")
    end_time: datetime | None = Field(default=None, description="Run end timestamp")
    duration_seconds: float = Field(default=0.0, ge=0.0)
    errors: list[str] = Field(default_factory=list)

    @property
    def total_added(self) -> int:
        return self.folders_added + self.files_added


class SyncReport(BaseModel):
    """Report of an incremental sync run."""

    root_id: str = Field(..., description="Tracked root folder id")
    status: RunStatus = Field(default=RunStatus.COMPLETED)
    pages_processed: int = Field(default=0, ge=0)
    changes_seen: int = Field(default=0, ge=0, description="Change records read from the feed")
    added: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)
    removed: int = Field(default=0, ge=0)
    ignored: int = Field(default=0, ge=0, description="Records outside the tracked subtree")
    cursor_recoveries: int = Field(default=0, ge=0)
    starting_cursor: str | None = None
    persisted_cursor: str | None = Field(default=None, description="Cursor written at completion")
    start_time: datetime = Field(..., description="Run start timestamp")
    end_time: datetime | None = Field(default=None)
    duration_seconds: float = Field(default=0.0, ge=0.0)
    errors: list[str] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """Check if any tracked entity was added, updated or removed."""
        return bool(self.added or self.updated or self.removed)

    @property
    def total_changes(self) -> int:
        return self.added + self.updated + self.removed
