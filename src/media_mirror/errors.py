"""Custom exceptions for media-mirror.

Fetch, transcode, publish and rewrite errors are block-scoped: the pipeline
turns them into failed outcomes and processing moves on to the next block.
Only SelectionError aborts a run.
"""

from typing import Optional

from .utils import shorten_url


class MirrorError(RuntimeError):
    """Base class for all media-mirror errors."""
    pass


# Block-scoped errors
class FetchError(MirrorError):
    """Media origin unreachable or answered with a non-success status."""

    def __init__(self, url: str, status: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status = status
        detail = f"HTTP {status}" if status is not None else (reason or "transport error")
        super().__init__(f"Fetch failed for {shorten_url(url)}: {detail}")


class TranscodeError(MirrorError):
    """Re-encoding failed; callers fall back to the original bytes."""
    pass


class PublishError(MirrorError):
    """Blob store write failed for a reason other than 'already exists'."""

    def __init__(self, path: str, status: Optional[int] = None, body: str = ""):
        self.path = path
        self.status = status
        self.body = body
        msg = f"Publishing {path} failed"
        if status is not None:
            msg += f" (HTTP {status})"
        if body:
            msg += f": {body[:200]}"
        super().__init__(msg)


class RewriteError(MirrorError):
    """Document store rejected a media reference write."""

    def __init__(self, target_id: str, status: Optional[int] = None, body: str = ""):
        self.target_id = target_id
        self.status = status
        msg = f"Rewriting media reference on {target_id} failed"
        if status is not None:
            msg += f" (HTTP {status})"
        if body:
            msg += f": {body[:200]}"
        super().__init__(msg)


# Document store errors
class StoreError(MirrorError):
    """Document store read failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class SelectionError(StoreError):
    """The initial document selection could not be enumerated."""
    pass


# Configuration errors
class ConfigError(MirrorError):
    """Configuration missing or invalid."""
    pass
