"""Storage package for the content-addressed blob store."""

from .base import BlobStore
from .factory import make_blob_store

__all__ = ["BlobStore", "make_blob_store"]
