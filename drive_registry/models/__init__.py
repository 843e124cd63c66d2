"""Data models for the Drive registry."""

from drive_registry.models.config import (
    AppConfig,
    CheckpointConfig,
    DriveConfig,
    LoggingConfig,
    RunConfig,
    SheetsConfig,
)
from drive_registry.models.entities import (
    FOLDER_MIME_TYPE,
    ChangeKind,
    ChangePage,
    ChangeRecord,
    ChildrenPage,
    EntityKind,
    EntityRow,
    ErrorRecord,
    FolderRow,
    FrontierQueue,
    NodeRef,
    RemoteChange,
    RemoteEntity,
)
from drive_registry.models.reports import (
    CrawlReport,
    RunStatus,
    StepResult,
    StepStatus,
    SyncReport,
)

__all__ = [
    "FOLDER_MIME_TYPE",
    "AppConfig",
    "ChangeKind",
    "ChangePage",
    "ChangeRecord",
    "CheckpointConfig",
    "ChildrenPage",
    "CrawlReport",
    "DriveConfig",
    "EntityKind",
    "EntityRow",
    "ErrorRecord",
    "FolderRow",
    "FrontierQueue",
    "LoggingConfig",
    "NodeRef",
    "RemoteChange",
    "RemoteEntity",
    "RunConfig",
    "RunStatus",
    "SheetsConfig",
    "StepResult",
    "StepStatus",
    "SyncReport",
]
