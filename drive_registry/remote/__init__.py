"""Remote adapter for the tracked Google Drive tree."""

from drive_registry.remote.base import RemoteAdapter
from drive_registry.remote.drive_client import DriveClient, classify_http_error
from drive_registry.remote.errors import RemoteError, RemoteErrorKind
from drive_registry.remote.urls import derive_view_url

__all__ = [
    "DriveClient",
    "RemoteAdapter",
    "RemoteError",
    "RemoteErrorKind",
    "classify_http_error",
    "derive_view_url",
]
