"""Browser URL derivation for registry rows."""

from drive_registry.models.entities import FOLDER_MIME_TYPE

DEFAULT_URL = "https://drive.google.com/file/d/{id}/view"
FOLDER_URL = "https://drive.google.com/drive/folders/{id}"

EDITOR_URLS: dict[str, str] = {
    "application/vnd.google-apps.spreadsheet": "https://docs.google.com/spreadsheets/d/{id}/edit",
    "application/vnd.google-apps.document": "https://docs.google.com/document/d/{id}/edit",
    "application/vnd.google-apps.presentation": "https://docs.google.com/presentation/d/{id}/edit",
}


def derive_view_url(entity_id: str, mime_type: str | None = None) -> str:
    """
    Build the browser URL for an entity without a remote call.

    Native spreadsheets, documents and presentations open in their editor;
    everything else uses the generic file viewer.

    Args:
        entity_id: Remote identifier
        mime_type: Remote MIME type, if known

    Returns:
        URL string
    """
    if mime_type == FOLDER_MIME_TYPE:
        return FOLDER_URL.format(id=entity_id)
    pattern = EDITOR_URLS.get(mime_type or "", DEFAULT_URL)
    return pattern.format(id=entity_id)
