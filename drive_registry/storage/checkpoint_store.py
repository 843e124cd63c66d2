"""Durable key-value stores holding the checkpoint between runs."""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from tempfile import NamedTemporaryFile

import structlog

from drive_registry.errors import CheckpointWriteError

log = structlog.stdlib.get_logger()

QUEUE_KEY = "frontier_queue"
CURSOR_KEY = "sync_cursor"


class CheckpointStore(ABC):
    """Abstract key-value persistence for the frontier queue and the sync cursor."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Raises:
            CheckpointWriteError: If the value could not be made durable
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; deleting an absent key is not an error."""


class InMemoryCheckpointStore(CheckpointStore):
    """Checkpoint store backed by a dict, for tests and dry runs."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)


class JsonFileCheckpointStore(CheckpointStore):
    """Checkpoint store persisted as one JSON object on disk.

    Every write replaces the whole file atomically, so an interrupted
    process leaves either the old or the new checkpoint behind.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        log.info("checkpoint_store_initialized", path=str(self.path))

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._write(data)
        log.debug("checkpoint_value_written", key=key, size=len(value))

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._write(data)
            log.debug("checkpoint_value_deleted", key=key)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                delete=False,
                dir=str(self.path.parent),
                suffix=".tmp",
            ) as tf:
                json.dump(data, tf, ensure_ascii=False, indent=2)
                tf.flush()
                os.fsync(tf.fileno())
                tmp_name = tf.name
            os.replace(tmp_name, str(self.path))
        except OSError as e:
            log.error("checkpoint_write_failed", path=str(self.path), error=str(e))
            raise CheckpointWriteError(f"Failed to write checkpoint {self.path}: {e}") from e
