"""Factory for creating blob storage instances."""

from pathlib import Path

import httpx

from ..config import MirrorConfig
from ..errors import ConfigError
from .base import BlobStore
from .fs import FilesystemBlobStore
from .github import GitHubBlobStore


def validate_github_config(config: MirrorConfig) -> None:
    """
    Early validation of GitHub configuration.

    Args:
        config: Run configuration

    Raises:
        ConfigError: If configuration is invalid
    """
    if not config.image_repo:
        raise ConfigError("IMAGE_REPO (owner/repo) required for GitHub blob storage")

    if not config.github_token and not config.dry_run:
        raise ConfigError("Set GH_TOKEN for GitHub blob storage")


def make_blob_store(config: MirrorConfig, client: httpx.Client) -> BlobStore:
    """
    Create blob store instance based on configuration.

    Args:
        config: Run configuration
        client: Shared HTTP client for network backends

    Returns:
        BlobStore instance

    Raises:
        ConfigError: If configuration is invalid
        NotImplementedError: If provider is not supported
    """
    if config.blob_provider == "github":
        validate_github_config(config)
        return GitHubBlobStore(
            client,
            config.image_repo,
            config.image_branch,
            config.github_token,
        )

    elif config.blob_provider == "fs":
        if not config.fs_root:
            raise ConfigError("MEDIA_MIRROR_FS_ROOT (directory path) required for filesystem storage")
        return FilesystemBlobStore(Path(config.fs_root))

    else:
        raise NotImplementedError(f"Provider {config.blob_provider} not supported")
