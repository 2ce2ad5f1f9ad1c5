"""Shared test fixtures and utilities."""

import pytest

from media_mirror.api import migrate
from media_mirror.config import MirrorConfig
from media_mirror.storage.fs import FilesystemBlobStore
from tests.fixtures.fake_store import MediaOrigin


@pytest.fixture
def blob_dir(tmp_path):
    return tmp_path / "blobs"


@pytest.fixture
def config(blob_dir):
    """Config with a small threshold and cap so test images stay tiny."""
    return MirrorConfig(
        image_repo="acme/media",
        image_branch="main",
        blob_provider="fs",
        fs_root=str(blob_dir),
        size_threshold=64 * 1024,
        max_dimension=128,
        max_depth=3,
    )


@pytest.fixture
def origin():
    """Fake media origin served through httpx.MockTransport."""
    return MediaOrigin()


@pytest.fixture
def blob_store(blob_dir):
    return FilesystemBlobStore(blob_dir)


@pytest.fixture
def run_migration(config, origin, blob_store):
    """Factory running one migration pass against a document store."""
    def _run(store, run_config=None, selector=None):
        with origin.client() as client:
            return migrate(
                run_config or config,
                selector,
                document_store=store,
                blob_store=blob_store,
                client=client,
            )
    return _run
