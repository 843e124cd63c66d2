"""Error taxonomy produced at the remote adapter boundary."""

from enum import Enum


class RemoteErrorKind(str, Enum):
    """Classification of a failed remote call."""

    TRANSIENT = "transient"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_CURSOR = "invalid_cursor"
    OTHER = "other"


class RemoteError(Exception):
    """Raised by remote adapters when a call fails.

    Callers decide on retries and recovery from ``kind`` alone.
    """

    def __init__(
        self,
        kind: RemoteErrorKind,
        message: str,
        operation: str = "",
        target_id: str | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.operation = operation
        self.target_id = target_id

    @property
    def is_transient(self) -> bool:
        return self.kind is RemoteErrorKind.TRANSIENT

    def __repr__(self) -> str:
        return (
            f"RemoteError(kind={self.kind.value!r}, operation={self.operation!r}, "
            f"target_id={self.target_id!r}, message={str(self)!r})"
        )
