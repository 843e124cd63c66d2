"""Google Drive client wrapper implementing the remote adapter."""

import json
from datetime import datetime
from typing import Any

import structlog
from googleapiclient.errors import HttpError

from drive_registry.models.entities import (
    FOLDER_MIME_TYPE,
    ChangePage,
    ChildrenPage,
    EntityKind,
    RemoteChange,
    RemoteEntity,
)
from drive_registry.remote.base import RemoteAdapter
from drive_registry.remote.errors import RemoteError, RemoteErrorKind
from drive_registry.remote.urls import derive_view_url

log = structlog.stdlib.get_logger()

FILE_FIELDS = "id, name, mimeType, parents, createdTime, modifiedTime, owners(emailAddress), trashed"

TRANSIENT_REASONS = frozenset(
    {"rateLimitExceeded", "userRateLimitExceeded", "backendError", "internalError"}
)


def classify_http_error(error: HttpError, operation: str) -> RemoteErrorKind:
    """
    Map a Google API error onto the remote error taxonomy.

    Uses the HTTP status and the structured ``reason`` of the error payload.

    Args:
        error: Error raised by googleapiclient
        operation: Adapter operation that failed; 400/410 only mean an invalid
            cursor on the change feed

    Returns:
        RemoteErrorKind for the error
    """
    status = int(error.resp.status)
    reasons = _error_reasons(error)

    if status == 429 or status >= 500:
        return RemoteErrorKind.TRANSIENT
    if status == 403 and reasons & TRANSIENT_REASONS:
        return RemoteErrorKind.TRANSIENT
    if status == 404:
        return RemoteErrorKind.NOT_FOUND
    if status in (401, 403):
        return RemoteErrorKind.FORBIDDEN
    if status in (400, 410) and operation == "list_changes":
        return RemoteErrorKind.INVALID_CURSOR
    return RemoteErrorKind.OTHER


def _error_reasons(error: HttpError) -> set[str]:
    """Extract ``error.errors[].reason`` values from the response body."""
    try:
        payload = json.loads(error.content.decode("utf-8"))
        details = payload["error"].get("errors", [])
        return {detail.get("reason", "") for detail in details if isinstance(detail, dict)}
    except (ValueError, KeyError, TypeError, AttributeError):
        return set()


class DriveClient(RemoteAdapter):
    """Wrapper around the Google Drive v3 API."""

    def __init__(self, service: Any, children_page_size: int = 1000, changes_page_size: int = 1000):
        """
        Initialize Drive client.

        Args:
            service: Drive v3 resource built by googleapiclient
            children_page_size: Page size for folder listings
            changes_page_size: Page size for change feed requests
        """
        self._service = service
        self._children_page_size = children_page_size
        self._changes_page_size = changes_page_size
        log.info(
            "drive_client_initialized",
            children_page_size=children_page_size,
            changes_page_size=changes_page_size,
        )

    def list_children(self, node_id: str, page_token: str | None = None) -> ChildrenPage:
        log.debug("listing_children", node_id=node_id, has_page_token=page_token is not None)

        params: dict[str, Any] = {
            "q": f"'{node_id}' in parents and trashed = false",
            "fields": f"nextPageToken, files({FILE_FIELDS})",
            "pageSize": self._children_page_size,
            "supportsAllDrives": True,
            "includeItemsFromAllDrives": True,
        }
        if page_token:
            params["pageToken"] = page_token

        response = self._execute(
            self._service.files().list(**params), operation="list_children", target_id=node_id
        )

        entities = [self._convert_to_entity(item) for item in response.get("files", [])]
        log.debug("children_listed", node_id=node_id, count=len(entities))
        return ChildrenPage(entities=entities, next_page_token=response.get("nextPageToken"))

    def get_node(self, node_id: str) -> RemoteEntity:
        log.info("fetching_node", node_id=node_id)

        response = self._execute(
            self._service.files().get(fileId=node_id, fields=FILE_FIELDS, supportsAllDrives=True),
            operation="get_node",
            target_id=node_id,
        )
        return self._convert_to_entity(response)

    def list_changes(self, cursor: str, page_token: str | None = None) -> ChangePage:
        token = page_token or cursor
        log.debug("listing_changes", page_token=token)

        request = self._service.changes().list(
            pageToken=token,
            pageSize=self._changes_page_size,
            fields=f"nextPageToken, newStartPageToken, changes(fileId, removed, time, file({FILE_FIELDS}))",
            supportsAllDrives=True,
            includeItemsFromAllDrives=True,
        )
        response = self._execute(request, operation="list_changes", target_id=token)

        changes = [self._convert_to_change(item) for item in response.get("changes", [])]
        log.debug(
            "changes_listed",
            count=len(changes),
            has_more="nextPageToken" in response,
            new_cursor=response.get("newStartPageToken"),
        )
        return ChangePage(
            changes=changes,
            next_page_token=response.get("nextPageToken"),
            new_cursor=response.get("newStartPageToken"),
        )

    def get_fresh_cursor(self) -> str:
        log.info("fetching_start_page_token")

        response = self._execute(
            self._service.changes().getStartPageToken(supportsAllDrives=True),
            operation="get_fresh_cursor",
        )
        token = response.get("startPageToken")
        if not token:
            raise RemoteError(
                RemoteErrorKind.OTHER,
                "Drive returned no startPageToken",
                operation="get_fresh_cursor",
            )
        return token

    def _execute(self, request: Any, operation: str, target_id: str | None = None) -> dict:
        """Execute a prepared request, translating transport errors."""
        try:
            return request.execute()
        except HttpError as e:
            kind = classify_http_error(e, operation)
            log.warning(
                "drive_request_failed",
                operation=operation,
                target_id=target_id,
                status=e.resp.status,
                kind=kind.value,
            )
            raise RemoteError(kind, str(e), operation=operation, target_id=target_id) from e
        except (TimeoutError, ConnectionError) as e:
            log.warning("drive_request_timeout", operation=operation, target_id=target_id, error=str(e))
            raise RemoteError(
                RemoteErrorKind.TRANSIENT, str(e), operation=operation, target_id=target_id
            ) from e

    def _convert_to_entity(self, item: dict) -> RemoteEntity:
        """
        Convert a Drive file resource to RemoteEntity.

        Args:
            item: Raw file resource from the Drive API

        Returns:
            RemoteEntity instance
        """
        mime_type = item.get("mimeType", "")
        owners = item.get("owners") or []

        return RemoteEntity(
            id=item["id"],
            name=item.get("name", ""),
            kind=EntityKind.FOLDER if mime_type == FOLDER_MIME_TYPE else EntityKind.FILE,
            parent_ids=list(item.get("parents") or []),
            created_at=_parse_time(item.get("createdTime")),
            modified_at=_parse_time(item.get("modifiedTime")),
            owner=owners[0].get("emailAddress", "") if owners else "",
            mime_type=mime_type,
            view_url=derive_view_url(item["id"], mime_type),
        )

    def _convert_to_change(self, item: dict) -> RemoteChange:
        file_data = item.get("file")
        entity = self._convert_to_entity(file_data) if file_data else None

        # Trashed entities leave the tree just like deleted ones.
        removed = bool(item.get("removed")) or bool(file_data and file_data.get("trashed"))

        return RemoteChange(
            entity_id=item.get("fileId") or (file_data or {}).get("id", ""),
            timestamp=_parse_time(item.get("time")) or datetime.now().astimezone(),
            removed=removed,
            entity=entity,
        )


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
