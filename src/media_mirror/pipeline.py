"""Per-reference migration pipeline.

classify -> [fetch -> gate -> address -> publish] -> rewrite, run as one
unit for one block or cover. Block-scoped failures come back as failed
outcomes so siblings, other documents and the run carry on.
"""

import logging
from typing import Callable, Optional, Tuple

from .classifier import classify, relink_url
from .config import MirrorConfig
from .core import Action, Block, BlockOutcome, DocumentSummary, MediaRef, OutcomeStatus
from .docstore.base import DocumentStore
from .errors import FetchError, PublishError, RewriteError
from .fetcher import ContentFetcher
from .hashing import content_filename
from .publisher import BlobPublisher
from .rewrite import apply_if_changed, needs_rewrite
from .transcode import TranscodeGate
from .utils import shorten_url

logger = logging.getLogger(__name__)

BLOCK_ERRORS = (FetchError, PublishError, RewriteError)


class MigrationPipeline:
    """Resolves media references to their final URL and writes them back."""

    def __init__(
        self,
        config: MirrorConfig,
        store: DocumentStore,
        fetcher: ContentFetcher,
        gate: TranscodeGate,
        publisher: BlobPublisher,
    ):
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self.gate = gate
        self.publisher = publisher

    def resolve(self, ref: MediaRef) -> Tuple[Action, str]:
        """
        Final URL for a reference.

        Args:
            ref: Current reference

        Returns:
            (action taken, final URL)

        Raises:
            FetchError: If the content cannot be downloaded
            PublishError: If the blob store write fails
        """
        action = classify(ref, self.config)

        if action == Action.NO_ACTION:
            return action, ref.url

        if action == Action.RELINK_STALE:
            url = relink_url(ref.url, self.config)
            if url is None:
                raise PublishError(ref.url, body="not an address of the target repository")
            return action, url

        data = self.fetcher.fetch(ref.url)
        result = self.gate.gate(data)
        filename = content_filename(result.data, result.extension)
        return action, self.publisher.publish(result.data, filename)

    def migrate_block(self, document_id: str, block: Block) -> BlockOutcome:
        """Run the pipeline for one media block."""
        return self._run(
            document_id,
            block.id,
            "block",
            block.media,
            lambda url: self.store.update_block_media(block, url),
        )

    def migrate_cover(self, document: DocumentSummary) -> BlockOutcome:
        """Run the pipeline for a document's existing cover."""
        return self._run(
            document.id,
            document.id,
            "cover",
            document.cover,
            lambda url: self.store.update_cover(document.id, url),
        )

    def set_cover(self, document: DocumentSummary, url: Optional[str]) -> BlockOutcome:
        """Point a document's cover at an already-final URL.

        In a dry run ``url`` is None when the first image is itself only
        planned; the cover is then planned too.
        """
        outcome = BlockOutcome(
            document_id=document.id,
            target_id=document.id,
            target="cover",
            url=url,
            status=OutcomeStatus.UNCHANGED,
        )
        if self.config.dry_run:
            if url is None or needs_rewrite(url, document.cover):
                outcome.status = OutcomeStatus.PLANNED
            return outcome
        if url is None:
            return outcome

        try:
            changed = apply_if_changed(
                lambda u: self.store.update_cover(document.id, u), document.id, url, document.cover
            )
        except RewriteError as e:
            logger.error("Cover of %s not updated: %s", document.display_name, e)
            outcome.status = OutcomeStatus.FAILED
            outcome.error = str(e)
            return outcome

        if changed:
            outcome.status = OutcomeStatus.REWRITTEN
        return outcome

    def _run(
        self,
        document_id: str,
        target_id: str,
        target: str,
        ref: Optional[MediaRef],
        write: Callable[[str], None],
    ) -> BlockOutcome:
        outcome = BlockOutcome(
            document_id=document_id,
            target_id=target_id,
            target=target,
            status=OutcomeStatus.UNCHANGED,
        )
        if ref is None:
            return outcome

        if self.config.dry_run:
            return self._plan(outcome, ref)

        try:
            outcome.action, outcome.url = self.resolve(ref)
            changed = apply_if_changed(write, target_id, outcome.url, ref)
        except BLOCK_ERRORS as e:
            logger.error("Failed %s %s (%s): %s", target, target_id, shorten_url(ref.url), e)
            outcome.status = OutcomeStatus.FAILED
            outcome.error = str(e)
            return outcome

        if changed:
            outcome.status = OutcomeStatus.REWRITTEN
        return outcome

    def _plan(self, outcome: BlockOutcome, ref: MediaRef) -> BlockOutcome:
        """Dry run: classify only. Relinking is pure, so its URL is known."""
        outcome.action = classify(ref, self.config)
        if outcome.action == Action.NO_ACTION:
            outcome.url = ref.url
            return outcome

        if outcome.action == Action.RELINK_STALE:
            outcome.url = relink_url(ref.url, self.config)
        outcome.status = OutcomeStatus.PLANNED
        logger.info("Would %s %s %s", outcome.action.value.replace("_", " "), outcome.target, outcome.target_id)
        return outcome
