"""Mirror configuration: one immutable value built at startup.

Precedence, lowest first: field defaults, the YAML config file, environment
variables, explicit overrides (the CLI's options).
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import CONFIG_FILE, DEFAULT_CDN_BASE
from .errors import ConfigError

_REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMG]i?B?|B)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {
    "": 1, "b": 1,
    "k": 1000, "kb": 1000, "ki": 1024, "kib": 1024,
    "m": 1000 ** 2, "mb": 1000 ** 2, "mi": 1024 ** 2, "mib": 1024 ** 2,
    "g": 1000 ** 3, "gb": 1000 ** 3, "gi": 1024 ** 3, "gib": 1024 ** 3,
}

# Environment variable -> config field. The first six are the unprefixed
# names existing CI workflows already export.
ENV_VARS: Dict[str, str] = {
    "NOTION_TOKEN": "notion_token",
    "DATABASE_ID": "database_id",
    "GH_TOKEN": "github_token",
    "IMAGE_REPO": "image_repo",
    "IMAGE_BRANCH": "image_branch",
    "FORCE_UPDATE": "force",
    "MEDIA_MIRROR_IMAGES_DIR": "images_dir",
    "MEDIA_MIRROR_CDN_BASE": "cdn_base",
    "MEDIA_MIRROR_BLOB_PROVIDER": "blob_provider",
    "MEDIA_MIRROR_FS_ROOT": "fs_root",
    "MEDIA_MIRROR_SIZE_THRESHOLD": "size_threshold",
    "MEDIA_MIRROR_MAX_DIMENSION": "max_dimension",
    "MEDIA_MIRROR_TRANSCODE_FORMAT": "transcode_format",
    "MEDIA_MIRROR_TRANSCODE_QUALITY": "transcode_quality",
    "MEDIA_MIRROR_MAX_DEPTH": "max_depth",
    "MEDIA_MIRROR_PAGE_SIZE": "page_size",
    "MEDIA_MIRROR_CONCURRENCY": "concurrency",
    "MEDIA_MIRROR_STATUS_PROPERTY": "status_property",
    "MEDIA_MIRROR_STATUS_PROPERTY_TYPE": "status_property_type",
    "MEDIA_MIRROR_BRANCH_MISMATCH": "branch_mismatch",
}


def parse_size(value: Union[str, int, float]) -> int:
    """Parse a byte size such as ``5242880``, ``5MiB`` or ``10 MB``.

    Args:
        value: Integer byte count or string with an optional unit

    Returns:
        Size in bytes

    Raises:
        ValueError: If the string is not a recognised size
    """
    if isinstance(value, (int, float)):
        return int(value)
    m = _SIZE_RE.match(value)
    if not m:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = m.groups()
    return int(float(number) * _SIZE_UNITS[(unit or "").lower()])


class MirrorConfig(BaseModel):
    """Settings shared by every component of a migration run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Document store
    notion_token: str = Field("", repr=False)
    database_id: str = ""
    status_property: str = "Status"
    status_property_type: Literal["status", "select"] = "status"

    # Blob store
    github_token: str = Field("", repr=False)
    image_repo: str = Field("", description="Target repository as owner/repo")
    image_branch: str = "main"
    images_dir: str = "images"
    blob_provider: Literal["github", "fs"] = "github"
    fs_root: str = ""
    cdn_base: str = DEFAULT_CDN_BASE

    # Transcode gate
    size_threshold: int = 5 * 1024 * 1024
    max_dimension: int = Field(2560, gt=0)
    transcode_format: Literal["webp", "jpg", "jpeg"] = "webp"
    transcode_quality: int = Field(82, ge=1, le=100)
    fallback_extension: str = "png"

    # Traversal and run behaviour
    max_depth: int = Field(3, ge=0)
    page_size: int = Field(50, ge=1, le=100)
    concurrency: int = Field(1, ge=1)
    fetch_timeout: float = Field(60.0, gt=0)
    rate_limit_retries: int = Field(3, ge=0)
    force: bool = False
    dry_run: bool = False
    cover_from_first_image: bool = True
    branch_mismatch: Literal["keep", "mirror"] = "keep"

    @field_validator("size_threshold", mode="before")
    @classmethod
    def _parse_threshold(cls, v: Any) -> int:
        size = parse_size(v)
        if size <= 0:
            raise ValueError("size_threshold must be positive")
        return size

    @field_validator("image_repo")
    @classmethod
    def _validate_repo(cls, v: str) -> str:
        v = v.strip().strip("/")
        if v and not _REPO_RE.match(v):
            raise ValueError(f"image_repo must look like 'owner/repo', got {v!r}")
        return v

    @field_validator("images_dir", "cdn_base")
    @classmethod
    def _strip_slashes(cls, v: str) -> str:
        return v.strip().strip("/") if not v.startswith("http") else v.rstrip("/")

    @property
    def repo_owner(self) -> str:
        return self.image_repo.split("/", 1)[0]

    @property
    def repo_name(self) -> str:
        return self.image_repo.split("/", 1)[1]

    def require_credentials(self) -> None:
        """Fail early when a real run lacks what it needs.

        Raises:
            ConfigError: Listing every missing setting
        """
        missing = []
        if not self.notion_token:
            missing.append("NOTION_TOKEN")
        if not self.database_id:
            missing.append("DATABASE_ID")
        if not self.image_repo:
            missing.append("IMAGE_REPO")
        if self.blob_provider == "github" and not self.github_token and not self.dry_run:
            missing.append("GH_TOKEN")
        if self.blob_provider == "fs" and not self.fs_root:
            missing.append("MEDIA_MIRROR_FS_ROOT")
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")

    def masked(self) -> Dict[str, Any]:
        """Config as a dict with tokens masked, for display."""
        data = self.model_dump()
        for key in ("notion_token", "github_token"):
            if data[key]:
                data[key] = data[key][:4] + "****"
        return data


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of settings")
    # Allow the settings to be nested under a top-level key
    return data.get("media_mirror", data)


def _from_environ(environ: Mapping[str, str]) -> Dict[str, str]:
    return {
        field: environ[var]
        for var, field in ENV_VARS.items()
        if environ.get(var, "") != ""
    }


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> MirrorConfig:
    """Build the run configuration.

    Args:
        path: Explicit YAML file; defaults to ./media-mirror.yaml when present
        environ: Environment mapping (defaults to os.environ)
        overrides: Highest-precedence values; None entries are ignored

    Returns:
        Frozen MirrorConfig

    Raises:
        ConfigError: If the file is missing/invalid or a value fails validation
    """
    data: Dict[str, Any] = {}

    cfg_path = Path(path) if path else Path.cwd() / CONFIG_FILE
    if cfg_path.exists():
        data.update(_read_yaml(cfg_path))
    elif path:
        raise ConfigError(f"Config file not found: {cfg_path}")

    data.update(_from_environ(os.environ if environ is None else environ))
    data.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return MirrorConfig(**data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e
