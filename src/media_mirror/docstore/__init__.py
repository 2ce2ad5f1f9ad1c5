"""Document store package: where documents and their block trees live."""

from .base import DocumentStore
from .notion import NotionDocumentStore

__all__ = ["DocumentStore", "NotionDocumentStore"]
