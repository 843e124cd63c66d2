"""Centralized provider module for remote adapters, sinks and checkpoint stores.

This module provides factory functions that turn configuration into concrete
collaborators. Modify these functions to swap implementations without
changing the engines.

Default implementations:
- Remote adapter: DriveClient (Google Drive v3)
- Output sink: SheetsOutputSink when a spreadsheet id is configured, otherwise in-memory
- Checkpoint store: JsonFileCheckpointStore
"""

from typing import Any

import google.auth
import structlog
from google.auth.exceptions import DefaultCredentialsError
from google.oauth2 import service_account
from googleapiclient.discovery import build

from drive_registry.models.config import AppConfig, DriveConfig
from drive_registry.remote.drive_client import DriveClient
from drive_registry.storage.checkpoint_store import CheckpointStore, JsonFileCheckpointStore
from drive_registry.storage.output_sink import InMemoryOutputSink, OutputSink
from drive_registry.storage.sheets_sink import SheetsOutputSink

log = structlog.stdlib.get_logger()


def get_credentials(drive_config: DriveConfig) -> Any:
    """Load service-account credentials, falling back to application default credentials.

    Raises:
        RuntimeError: If no credentials can be found
    """
    if drive_config.credentials_file:
        log.info("loading_service_account_credentials", path=drive_config.credentials_file)
        return service_account.Credentials.from_service_account_file(
            drive_config.credentials_file, scopes=drive_config.scopes
        )

    try:
        credentials, project = google.auth.default(scopes=drive_config.scopes)
    except DefaultCredentialsError as e:
        log.error("credentials_not_found", error=str(e))
        raise RuntimeError(f"No Google credentials available: {e}") from e

    log.info("using_default_credentials", project=project)
    return credentials


def get_remote_adapter(config: AppConfig, credentials: Any) -> DriveClient:
    """Build the Drive adapter for the configured tree."""
    service = build("drive", "v3", credentials=credentials, cache_discovery=False)
    return DriveClient(
        service,
        children_page_size=config.drive.children_page_size,
        changes_page_size=config.drive.changes_page_size,
    )


def get_output_sink(config: AppConfig, credentials: Any) -> OutputSink:
    """Build the output sink; without a spreadsheet id rows stay in memory."""
    if not config.sheets.spreadsheet_id:
        log.warning("using_in_memory_output_sink")
        return InMemoryOutputSink()

    service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
    return SheetsOutputSink(service, config.sheets)


def get_checkpoint_store(config: AppConfig) -> CheckpointStore:
    return JsonFileCheckpointStore(config.checkpoint.path)
