"""Remote adapter interface for the tracked hierarchical store."""

from abc import ABC, abstractmethod

from drive_registry.models.entities import ChangePage, ChildrenPage, RemoteEntity


class RemoteAdapter(ABC):
    """Abstract interface for the remote tree.

    Implementations perform exactly one remote request per call and never
    retry; failures are raised as ``RemoteError`` with a classified kind.
    """

    @abstractmethod
    def list_children(self, node_id: str, page_token: str | None = None) -> ChildrenPage:
        """List one page of the direct children of a folder.

        Args:
            node_id: Folder whose children are listed
            page_token: Continuation token from the previous page, None for page one

        Returns:
            ChildrenPage with entities and the next page token (None on the last page)

        Raises:
            RemoteError: If the request fails
        """

    @abstractmethod
    def get_node(self, node_id: str) -> RemoteEntity:
        """Fetch a single entity.

        Raises:
            RemoteError: NOT_FOUND or FORBIDDEN when the node cannot be read
        """

    @abstractmethod
    def list_changes(self, cursor: str, page_token: str | None = None) -> ChangePage:
        """List one page of the change feed.

        Args:
            cursor: Cursor the current sync started from
            page_token: Continuation token; the cursor itself for page one

        Raises:
            RemoteError: INVALID_CURSOR when the token is no longer accepted
        """

    @abstractmethod
    def get_fresh_cursor(self) -> str:
        """Return a cursor marking the current head of the change feed."""
