"""Base protocol for blob storage implementations."""

from typing import Protocol


class BlobStore(Protocol):
    """
    Protocol for blob storage implementations.

    Objects are created once and never mutated or deleted. The store is the
    single source of truth for whether a content address already exists:
    there is no separate existence check before writing.
    """

    def put(self, path: str, data: bytes, message: str = "") -> bool:
        """
        Create an object if absent.

        Args:
            path: Object path inside the store (e.g. images/<sha1>.png)
            data: Object bytes
            message: Commit/audit message, where the backend records one

        Returns:
            True if the object was created, False if it already existed

        Raises:
            PublishError: For any other failure
        """
        ...
