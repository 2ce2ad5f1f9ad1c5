"""Filesystem blob storage implementation for local runs and testing."""

import os
import tempfile
from pathlib import Path

from ..errors import PublishError


class FilesystemBlobStore:
    """
    Local directory store (avoids needing a GitHub repository in tests).

    Objects are stored at base_dir/<path>, e.g. base_dir/images/<sha1>.png
    """

    def __init__(self, base_dir: Path):
        """
        Initialize filesystem store.

        Args:
            base_dir: Base directory for stored objects
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def put(self, path: str, data: bytes, message: str = "") -> bool:
        """
        Write ``data`` to base_dir/path unless it already exists.

        Args:
            path: Relative object path
            data: Object bytes
            message: Ignored

        Returns:
            True if written, False if an object was already there
        """
        dest = self._resolve(path)

        # Check if already exists (idempotent)
        if dest.exists():
            return False

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file in the same directory, then rename atomically
            fd, tmp = tempfile.mkstemp(prefix=f".{dest.name}.partial-", dir=dest.parent)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp, dest)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PublishError(path, body=str(e)) from e
        return True

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def read(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def _resolve(self, path: str) -> Path:
        """Map an object path under base_dir, refusing traversal."""
        parts = Path(path).parts
        if not path or path.startswith(("/", "\\")) or ".." in parts:
            raise PublishError(path, body="unsafe object path")
        return self.base_dir / path
