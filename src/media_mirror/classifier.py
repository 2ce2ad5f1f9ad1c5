"""URL classifier for media references.

Decides, from the reference alone and without network access, whether a
media reference must be migrated, relinked, mirrored or left alone.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from .cdn import cdn_url
from .config import MirrorConfig
from .core import Action, MediaRef

# Direct (non-accelerated) addresses of a GitHub repository's files
_RAW_RE = re.compile(
    r"^https?://raw\.githubusercontent\.com/"
    r"(?P<owner>[^/]+)/(?P<repo>[^/]+)/(?:refs/heads/)?(?P<branch>[^/]+)/(?P<path>.+)$",
    re.IGNORECASE,
)
_GITHUB_RE = re.compile(
    r"^https?://(?:www\.)?github\.com/"
    r"(?P<owner>[^/]+)/(?P<repo>[^/]+)/(?:raw|blob)/(?P<branch>[^/]+)/(?P<path>.+)$",
    re.IGNORECASE,
)

# jsDelivr mirrors that serve the same files under another host
ALTERNATE_CDN_BASES = (
    "https://cdn.jsdelivr.net/gh",
    "https://fastly.jsdelivr.net/gh",
    "https://gcore.jsdelivr.net/gh",
    "https://testingcf.jsdelivr.net/gh",
)


@dataclass(frozen=True)
class StoreLocation:
    """A file of a GitHub repository, as parsed from one of its URLs."""

    owner: str
    repo: str
    branch: Optional[str]
    path: str
    accelerated: bool  # Addressed through the configured CDN base

    def is_repo(self, image_repo: str) -> bool:
        return f"{self.owner}/{self.repo}".lower() == image_repo.lower()


def _cdn_pattern(base: str) -> "re.Pattern[str]":
    return re.compile(
        "^" + re.escape(base.rstrip("/")) +
        r"/(?P<owner>[^/]+)/(?P<repo>[^/@]+)(?:@(?P<branch>[^/]+))?/(?P<path>.+)$",
        re.IGNORECASE,
    )


def parse_store_url(url: str, config: MirrorConfig) -> Optional[StoreLocation]:
    """Parse a URL pointing at a file of some GitHub repository.

    Query strings and fragments are ignored (``?raw=true``, signed tokens).

    Args:
        url: Absolute URL
        config: Run configuration, for the CDN base

    Returns:
        StoreLocation, or None if the URL is not a repository file address
    """
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        # Malformed netloc (e.g. an unclosed IPv6 bracket) cannot be ours
        return None
    bare = f"{parts.scheme}://{parts.netloc}{parts.path}"

    m = _cdn_pattern(config.cdn_base).match(bare)
    if m:
        # Unpinned CDN URLs follow the default branch, so they are not final
        return StoreLocation(accelerated=m.group("branch") is not None, **m.groupdict())

    for base in ALTERNATE_CDN_BASES:
        m = _cdn_pattern(base).match(bare)
        if m:
            return StoreLocation(accelerated=False, **m.groupdict())

    for pattern in (_RAW_RE, _GITHUB_RE):
        m = pattern.match(bare)
        if m:
            return StoreLocation(accelerated=False, **m.groupdict())

    return None


def classify(ref: MediaRef, config: MirrorConfig) -> Action:
    """Decide what a media reference needs.

    Args:
        ref: Current reference of a block or document cover
        config: Run configuration (target repository, branch, CDN base)

    Returns:
        Exactly one Action
    """
    if ref.is_hosted:
        return Action.MIGRATE_NATIVE

    loc = parse_store_url(ref.url, config)
    if loc is None or not config.image_repo or not loc.is_repo(config.image_repo):
        return Action.MIRROR_FOREIGN

    on_other_branch = loc.branch is not None and loc.branch != config.image_branch
    if on_other_branch and config.branch_mismatch == "mirror":
        return Action.MIRROR_FOREIGN

    # Own store in any other non-final form is relinked, keeping its branch
    if not loc.accelerated:
        return Action.RELINK_STALE
    return Action.NO_ACTION


def relink_url(url: str, config: MirrorConfig) -> Optional[str]:
    """Accelerated URL for an own-store direct address.

    The branch in the URL is kept since that is where the file is known to
    exist; an unpinned URL gets the configured branch.

    Returns:
        CDN URL, or None if ``url`` is not an address of the target repository
    """
    loc = parse_store_url(url, config)
    if loc is None or not loc.is_repo(config.image_repo):
        return None
    return cdn_url(
        config.image_repo,
        loc.branch or config.image_branch,
        loc.path,
        config.cdn_base,
    )
