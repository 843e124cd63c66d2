"""Fatal errors that abort a registry run."""


class RegistryError(Exception):
    """Base class for conditions that abort a run entirely."""

    #: Short label used as the error-log location.
    location: str = "run"


class RootNotFoundError(RegistryError):
    """Raised when the configured root folder cannot be resolved."""

    location = "seed_root"


class MissingCursorError(RegistryError):
    """Raised when an incremental sync is requested before any full crawl."""

    location = "load_cursor"


class CheckpointWriteError(RegistryError):
    """Raised when the checkpoint store rejects a write."""

    location = "checkpoint"
