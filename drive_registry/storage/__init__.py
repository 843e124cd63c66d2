"""Checkpoint stores and output sinks."""

from drive_registry.storage.checkpoint_store import (
    CURSOR_KEY,
    QUEUE_KEY,
    CheckpointStore,
    InMemoryCheckpointStore,
    JsonFileCheckpointStore,
)
from drive_registry.storage.output_sink import InMemoryOutputSink, OutputSink
from drive_registry.storage.row_buffer import RowBuffer
from drive_registry.storage.sheets_sink import SheetsOutputSink

__all__ = [
    "CURSOR_KEY",
    "QUEUE_KEY",
    "CheckpointStore",
    "InMemoryCheckpointStore",
    "InMemoryOutputSink",
    "JsonFileCheckpointStore",
    "OutputSink",
    "RowBuffer",
    "SheetsOutputSink",
]
