"""Stable API for media-mirror runs.

The CLI and scheduled jobs go through ``migrate()``; collaborators can be
injected so that embedding applications and tests control all I/O.
"""

from datetime import datetime
from typing import Optional

import httpx

from .config import MirrorConfig
from .constants import MIRROR_VERSION
from .core import DocumentSelector, RunReport
from .docstore.base import DocumentStore
from .docstore.notion import NotionDocumentStore
from .driver import MigrationDriver
from .fetcher import ContentFetcher
from .pipeline import MigrationPipeline
from .publisher import BlobPublisher
from .storage.base import BlobStore
from .storage.factory import make_blob_store
from .transcode import TranscodeGate


def make_client(config: MirrorConfig) -> httpx.Client:
    """HTTP client shared by the fetcher and the network-backed stores."""
    return httpx.Client(
        timeout=config.fetch_timeout,
        headers={"User-Agent": f"media-mirror/{MIRROR_VERSION}"},
    )


def build_driver(
    config: MirrorConfig,
    client: httpx.Client,
    document_store: Optional[DocumentStore] = None,
    blob_store: Optional[BlobStore] = None,
) -> MigrationDriver:
    """Wire the engine's components around one configuration value."""
    store = document_store or NotionDocumentStore(client, config)
    publisher = BlobPublisher(blob_store or make_blob_store(config, client), config)
    pipeline = MigrationPipeline(
        config,
        store,
        ContentFetcher(client),
        TranscodeGate(config),
        publisher,
    )
    return MigrationDriver(config, store, pipeline, publisher)


def migrate(
    config: MirrorConfig,
    selector: Optional[DocumentSelector] = None,
    *,
    document_store: Optional[DocumentStore] = None,
    blob_store: Optional[BlobStore] = None,
    client: Optional[httpx.Client] = None,
    now: Optional[datetime] = None,
) -> RunReport:
    """Run one migration pass.

    Args:
        config: Run configuration
        selector: Which documents to visit (default: all)
        document_store: Injected document store (default: Notion from config)
        blob_store: Injected blob store (default: from config.blob_provider)
        client: Injected HTTP client; one is created and closed otherwise
        now: Reference time for the edited-within window

    Returns:
        RunReport for the pass

    Raises:
        ConfigError: If required settings are missing
        SelectionError: If the document selection cannot be enumerated

    Example:
        >>> from media_mirror.api import migrate
        >>> from media_mirror.config import load_config
        >>> report = migrate(load_config())
        >>> print(report.summary())
        12 documents, 3 rewritten, 40 unchanged, 3 uploaded
    """
    if document_store is None:
        config.require_credentials()

    own_client = client is None
    http = client or make_client(config)
    try:
        driver = build_driver(config, http, document_store, blob_store)
        return driver.run(selector, now=now)
    finally:
        if own_client:
            http.close()
