"""Rewrite applier: write-on-change replacement of media references."""

import logging
from typing import Callable, Optional

from .core import MediaRef

logger = logging.getLogger(__name__)


def needs_rewrite(new_url: Optional[str], current: Optional[MediaRef]) -> bool:
    """Whether ``current`` must be replaced to point at ``new_url``.

    An empty ``new_url`` means the migration failed upstream; nothing is
    written in that case.
    """
    if not new_url:
        return False
    if current is not None and not current.is_hosted and current.url == new_url:
        return False
    return True


def apply_if_changed(
    write: Callable[[str], None],
    target_id: str,
    new_url: Optional[str],
    current: Optional[MediaRef],
) -> bool:
    """
    Replace a media reference with External{new_url} unless already equal.

    Args:
        write: Store call performing the full replacement
        target_id: Block or document id, for logging
        new_url: Final URL
        current: Reference currently on the target

    Returns:
        True if a write was issued

    Raises:
        RewriteError: Propagated from ``write``
    """
    if not needs_rewrite(new_url, current):
        return False
    write(new_url)
    logger.info("Rewrote %s -> %s", target_id, new_url)
    return True
