"""Blob publisher: content-addressed upload plus CDN URL formation."""

import logging
import threading

from .cdn import cdn_url
from .config import MirrorConfig
from .hashing import object_path
from .storage.base import BlobStore

logger = logging.getLogger(__name__)


class BlobPublisher:
    """Publishes final bytes under their content-addressed name.

    Thread-safe: counters are the only shared state.
    """

    def __init__(self, store: BlobStore, config: MirrorConfig):
        self.store = store
        self.config = config
        self.uploads = 0
        self.existing = 0
        self._lock = threading.Lock()

    def publish(self, data: bytes, filename: str) -> str:
        """
        Store ``data`` as ``filename`` and return its CDN URL.

        An object already stored under the same content address counts as
        success. The URL is derived from repository, branch and path, never
        from the store's response.

        Args:
            data: Final bytes
            filename: Content-addressed name, <sha1>.<ext>

        Returns:
            CDN-facing URL

        Raises:
            PublishError: If the store fails for any other reason
        """
        path = object_path(filename, self.config)
        created = self.store.put(path, data, message=f"upload image {filename}")

        with self._lock:
            if created:
                self.uploads += 1
            else:
                self.existing += 1

        url = self.url_for(path)
        logger.info("%s %s", "Uploaded" if created else "Already stored", path)
        return url

    def url_for(self, path: str) -> str:
        return cdn_url(self.config.image_repo, self.config.image_branch, path, self.config.cdn_base)
