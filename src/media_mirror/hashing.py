"""Content addressing for stored media.

The hex SHA-1 of the final bytes is both the dedup key and the stored
object's name, so identical content always lands on the same path.
"""

import hashlib

from .config import MirrorConfig


def compute_content_digest(data: bytes) -> str:
    """Compute SHA-1 of a byte string.

    Args:
        data: Final (possibly transcoded) media bytes

    Returns:
        40-character lowercase hex digest
    """
    return hashlib.sha1(data).hexdigest()


def content_filename(data: bytes, extension: str) -> str:
    """Stored file name for ``data``: ``<sha1>.<extension>``."""
    return f"{compute_content_digest(data)}.{extension.lstrip('.').lower()}"


def object_path(filename: str, config: MirrorConfig) -> str:
    """Repository path of a stored object, under the configured images dir."""
    if not config.images_dir:
        return filename
    return f"{config.images_dir}/{filename}"


__all__ = [
    "compute_content_digest",
    "content_filename",
    "object_path",
]
