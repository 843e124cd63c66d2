"""Output sink writing registry tables to a Google Sheets spreadsheet."""

from typing import Any, Sequence

import structlog

from drive_registry.models.config import SheetsConfig
from drive_registry.models.entities import ChangeRecord, EntityRow, ErrorRecord, FolderRow
from drive_registry.storage.output_sink import OutputSink

log = structlog.stdlib.get_logger()


class SheetsOutputSink(OutputSink):
    """Appends registry rows through the Sheets v4 values API.

    Tabs are expected to exist with a header row; ids live in column A.
    """

    def __init__(self, service: Any, config: SheetsConfig):
        """
        Initialize the sink.

        Args:
            service: Sheets v4 resource built by googleapiclient
            config: Spreadsheet id, tab names and status cell

        Raises:
            ValueError: If no spreadsheet id is configured
        """
        if not config.spreadsheet_id:
            raise ValueError("sheets.spreadsheet_id is required for SheetsOutputSink")
        self._values = service.spreadsheets().values()
        self._config = config
        self._spreadsheet_id = config.spreadsheet_id
        log.info("sheets_sink_initialized", spreadsheet_id=self._spreadsheet_id)

    def append_entities(self, rows: Sequence[EntityRow]) -> None:
        self._append(self._config.entity_tab, [row.to_values() for row in rows])

    def append_folders(self, rows: Sequence[FolderRow]) -> None:
        self._append(self._config.folder_tab, [row.to_values() for row in rows])

    def append_changes(self, rows: Sequence[ChangeRecord]) -> None:
        self._append(self._config.change_tab, [row.to_values() for row in rows])

    def append_errors(self, rows: Sequence[ErrorRecord]) -> None:
        self._append(self._config.error_tab, [row.to_values() for row in rows])

    def read_entity_ids(self) -> set[str]:
        return self._read_ids(self._config.entity_tab)

    def read_folder_ids(self) -> set[str]:
        return self._read_ids(self._config.folder_tab)

    def set_status(self, message: str) -> None:
        self._values.update(
            spreadsheetId=self._spreadsheet_id,
            range=self._config.status_range,
            valueInputOption="RAW",
            body={"values": [[message]]},
        ).execute()
        log.debug("status_updated", message=message)

    def _append(self, tab: str, values: list[list[str]]) -> None:
        if not values:
            return
        self._values.append(
            spreadsheetId=self._spreadsheet_id,
            range=f"'{tab}'!A1",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": values},
        ).execute()
        log.info("rows_appended", tab=tab, count=len(values))

    def _read_ids(self, tab: str) -> set[str]:
        """Read column A below the header row."""
        response = self._values.get(
            spreadsheetId=self._spreadsheet_id,
            range=f"'{tab}'!A2:A",
        ).execute()
        ids = {row[0] for row in response.get("values", []) if row and row[0]}
        log.info("ids_loaded", tab=tab, count=len(ids))
        return ids
