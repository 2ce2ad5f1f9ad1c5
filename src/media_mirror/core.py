"""Core data models for media-mirror.

The document store owns documents, blocks and their media references; the
engine only reads them and replaces whole MediaRefs. Outcomes flow back up
from the pipeline as values rather than exceptions, so a run report can be
built without any block failure escaping its block.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import MEDIA_BLOCK_TYPES


# ============= Document Store Entities =============

class RefKind(str, Enum):
    """Which variant of a MediaRef is populated."""

    HOSTED = "hosted"      # Ephemeral URL owned by the document store
    EXTERNAL = "external"  # Arbitrary absolute URL


class MediaRef(BaseModel):
    """Reference to an image, replaced as a whole, never partially."""

    model_config = ConfigDict(frozen=True)

    kind: RefKind
    url: str

    @classmethod
    def hosted(cls, url: str) -> "MediaRef":
        return cls(kind=RefKind.HOSTED, url=url)

    @classmethod
    def external(cls, url: str) -> "MediaRef":
        return cls(kind=RefKind.EXTERNAL, url=url)

    @property
    def is_hosted(self) -> bool:
        return self.kind == RefKind.HOSTED


class Block(BaseModel):
    """A node of a document's content tree."""

    id: str
    type: str
    has_children: bool = False
    media: Optional[MediaRef] = None

    @property
    def is_media(self) -> bool:
        return self.type in MEDIA_BLOCK_TYPES and self.media is not None


class DocumentSummary(BaseModel):
    """A selected document: its root id doubles as its block container id."""

    id: str
    title: str = ""
    cover: Optional[MediaRef] = None
    last_edited: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.title or self.id


class ChildPage(BaseModel):
    """One page of a container's children listing."""

    results: List[Block] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False


class DocumentSelector(BaseModel):
    """Which documents a run visits. Empty selector means all of them."""

    edited_within: Optional[timedelta] = None
    status: Optional[str] = None

    def edited_since(self, now: datetime) -> Optional[datetime]:
        """Lower bound on last-edited time, relative to ``now``."""
        if self.edited_within is None:
            return None
        return now - self.edited_within

    @property
    def is_unfiltered(self) -> bool:
        return self.edited_within is None and self.status is None


# ============= Classification & Outcomes =============

class Action(str, Enum):
    """What a media reference needs."""

    MIGRATE_NATIVE = "migrate_native"  # Hosted URL, copy into the blob store
    RELINK_STALE = "relink_stale"      # Own store, direct address
    MIRROR_FOREIGN = "mirror_foreign"  # Hosted somewhere else, copy it
    NO_ACTION = "no_action"            # Already in final form

    @property
    def needs_content(self) -> bool:
        """Whether resolving this action downloads and publishes bytes."""
        return self in (Action.MIGRATE_NATIVE, Action.MIRROR_FOREIGN)


class OutcomeStatus(str, Enum):
    """Result of one block (or cover) pipeline run."""

    REWRITTEN = "rewritten"  # Reference replaced with the final URL
    UNCHANGED = "unchanged"  # Reference already equal to the final URL
    PLANNED = "planned"      # Dry run, nothing fetched or written
    FAILED = "failed"


class BlockOutcome(BaseModel):
    """Per-block result, Ok(url) or Failed(reason)."""

    document_id: str
    target_id: str
    target: str = "block"  # "block" or "cover"
    action: Optional[Action] = None
    status: OutcomeStatus
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != OutcomeStatus.FAILED


class DocumentReport(BaseModel):
    """Everything that happened while visiting one document."""

    document_id: str
    title: str = ""
    outcomes: List[BlockOutcome] = Field(default_factory=list)
    containers_visited: int = 0
    errors: List[str] = Field(default_factory=list)  # Container-level failures
    first_media: Optional[BlockOutcome] = None  # First media block resolved without failure

    def record(self, outcome: BlockOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def first_media_url(self) -> Optional[str]:
        return self.first_media.url if self.first_media else None

    @property
    def failed(self) -> List[BlockOutcome]:
        return [o for o in self.outcomes if not o.ok]


class RunReport(BaseModel):
    """Aggregated result of a migration run."""

    documents: List[DocumentReport] = Field(default_factory=list)
    uploads: int = 0
    existing: int = 0
    dry_run: bool = False

    @property
    def outcomes(self) -> List[BlockOutcome]:
        return [o for doc in self.documents for o in doc.outcomes]

    def count_by_status(self) -> Dict[OutcomeStatus, int]:
        counts = {status: 0 for status in OutcomeStatus}
        for outcome in self.outcomes:
            counts[outcome.status] += 1
        return counts

    @property
    def has_failures(self) -> bool:
        return any(not o.ok for o in self.outcomes) or any(d.errors for d in self.documents)

    def summary(self) -> str:
        """Get human-readable summary."""
        counts = self.count_by_status()
        parts = [f"{len(self.documents)} documents"]
        if self.dry_run:
            parts.append(f"{counts[OutcomeStatus.PLANNED]} planned")
        else:
            parts.append(f"{counts[OutcomeStatus.REWRITTEN]} rewritten")
            parts.append(f"{counts[OutcomeStatus.UNCHANGED]} unchanged")
            parts.append(f"{self.uploads} uploaded")
            if self.existing:
                parts.append(f"{self.existing} already stored")
        failed = counts[OutcomeStatus.FAILED]
        if failed:
            parts.append(f"{failed} failed")
        return ", ".join(parts)
