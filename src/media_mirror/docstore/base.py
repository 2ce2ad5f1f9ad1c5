"""Base protocol for document store implementations."""

from datetime import datetime
from typing import Iterator, Optional, Protocol

from ..core import Block, ChildPage, DocumentSelector, DocumentSummary


class DocumentStore(Protocol):
    """
    Protocol for document stores.

    The engine reads documents and child listings and replaces whole media
    references; it never creates or deletes blocks.
    """

    def query_documents(
        self, selector: DocumentSelector, now: Optional[datetime] = None
    ) -> Iterator[DocumentSummary]:
        """
        Enumerate documents matching ``selector``.

        Raises:
            StoreError: If the query fails
        """
        ...

    def list_children(
        self, container_id: str, cursor: Optional[str] = None, page_size: int = 50
    ) -> ChildPage:
        """
        One page of a container's child blocks.

        Raises:
            StoreError: If the listing fails
        """
        ...

    def update_block_media(self, block: Block, url: str) -> None:
        """
        Replace a media block's reference with External{url}.

        Raises:
            RewriteError: If the store rejects the write
        """
        ...

    def update_cover(self, document_id: str, url: str) -> None:
        """
        Replace a document's cover with External{url}.

        Raises:
            RewriteError: If the store rejects the write
        """
        ...
