"""Depth-bounded walk over a document's block tree."""

import logging
from typing import Optional, Set

from .config import MirrorConfig
from .core import DocumentReport
from .docstore.base import DocumentStore
from .errors import StoreError
from .pipeline import MigrationPipeline

logger = logging.getLogger(__name__)


class TreeWalker:
    """Paginates each container's children and recurses into nested blocks.

    Traversal is depth-first in the store's listing order. Cursors are local
    to one container's listing loop and never shared across containers.
    """

    def __init__(self, store: DocumentStore, pipeline: MigrationPipeline, config: MirrorConfig):
        self.store = store
        self.pipeline = pipeline
        self.config = config

    def walk(self, document_id: str, title: str = "") -> DocumentReport:
        """
        Migrate every media block under a document.

        Args:
            document_id: Root container id
            title: Display name, for the report

        Returns:
            DocumentReport with one outcome per media block visited
        """
        report = DocumentReport(document_id=document_id, title=title)
        self._walk(document_id, 0, report, set())
        return report

    def _walk(self, container_id: str, depth: int, report: DocumentReport, visited: Set[str]) -> None:
        if depth > self.config.max_depth:
            logger.debug("Not descending into %s: depth %d > %d", container_id, depth, self.config.max_depth)
            return
        if container_id in visited:
            return
        visited.add(container_id)
        report.containers_visited += 1

        cursor: Optional[str] = None
        while True:
            try:
                page = self.store.list_children(container_id, cursor, self.config.page_size)
            except StoreError as e:
                # Abandon this container only; the parent's siblings go on
                logger.error("Skipping children of %s: %s", container_id, e)
                report.errors.append(str(e))
                return

            for block in page.results:
                if block.is_media:
                    outcome = self.pipeline.migrate_block(report.document_id, block)
                    report.record(outcome)
                    if report.first_media is None and outcome.ok:
                        report.first_media = outcome

                if block.has_children:
                    self._walk(block.id, depth + 1, report, visited)

            if not page.has_more or not page.next_cursor:
                return
            cursor = page.next_cursor
