"""Migration driver: selects documents and walks each one."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional

from .config import MirrorConfig
from .core import DocumentReport, DocumentSelector, DocumentSummary, RunReport
from .docstore.base import DocumentStore
from .errors import SelectionError, StoreError
from .pipeline import MigrationPipeline
from .publisher import BlobPublisher
from .walker import TreeWalker

logger = logging.getLogger(__name__)


class MigrationDriver:
    """Runs the walker over every selected document.

    Documents are independent, so with ``concurrency > 1`` they are
    processed on a thread pool. Each block's pipeline still runs start to
    finish inside a single worker.
    """

    def __init__(
        self,
        config: MirrorConfig,
        store: DocumentStore,
        pipeline: MigrationPipeline,
        publisher: BlobPublisher,
        walker: Optional[TreeWalker] = None,
    ):
        self.config = config
        self.store = store
        self.pipeline = pipeline
        self.publisher = publisher
        self.walker = walker or TreeWalker(store, pipeline, config)

    def select(self, selector: DocumentSelector, now: Optional[datetime] = None) -> List[DocumentSummary]:
        """
        Enumerate the documents a run covers.

        Raises:
            SelectionError: If the store cannot list them; nothing can be scoped
        """
        try:
            return list(self.store.query_documents(selector, now=now))
        except StoreError as e:
            raise SelectionError(f"Could not enumerate documents: {e}", status=e.status) from e

    def run(self, selector: Optional[DocumentSelector] = None, now: Optional[datetime] = None) -> RunReport:
        """
        Visit every selected document once.

        Args:
            selector: Which documents; all of them by default
            now: Reference time for the edited-within window

        Returns:
            RunReport; block failures are reported, not raised

        Raises:
            SelectionError: If the initial selection fails
        """
        documents = self.select(selector or DocumentSelector(), now=now)
        logger.info("Found %d documents", len(documents))

        if self.config.concurrency <= 1 or len(documents) <= 1:
            reports = [self.process(doc) for doc in documents]
        else:
            with ThreadPoolExecutor(max_workers=self.config.concurrency) as executor:
                reports = list(executor.map(self.process, documents))

        return RunReport(
            documents=reports,
            uploads=self.publisher.uploads,
            existing=self.publisher.existing,
            dry_run=self.config.dry_run,
        )

    def process(self, document: DocumentSummary) -> DocumentReport:
        """
        Migrate one document: its block tree, then its cover.

        Without a cover (or with ``force``) the cover is taken from the
        document's first image; otherwise the existing cover goes through
        the same pipeline as any block.
        """
        logger.info("Processing %s", document.display_name)
        report = self.walker.walk(document.id, title=document.display_name)

        derive_cover = self.config.cover_from_first_image and (
            document.cover is None or self.config.force
        )
        if derive_cover and report.first_media is not None:
            report.record(self.pipeline.set_cover(document, report.first_media_url))
        elif document.cover is not None:
            report.record(self.pipeline.migrate_cover(document))
        elif derive_cover:
            logger.info("No image found for the cover of %s", document.display_name)

        failed = len(report.failed)
        if failed:
            logger.warning("%s: %d of %d references failed", document.display_name, failed, len(report.outcomes))
        return report
