"""Migrate document-store media to a content-addressed, CDN-fronted repository."""

from .constants import MIRROR_VERSION

__version__ = MIRROR_VERSION
