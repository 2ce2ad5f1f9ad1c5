"""Constants for media-mirror."""

# Version
MIRROR_VERSION = "0.1.0"

# Configuration file looked up in the working directory
CONFIG_FILE = "media-mirror.yaml"

# Notion API
NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
NOTION_MAX_PAGE_SIZE = 100

# GitHub contents API
GITHUB_API_BASE = "https://api.github.com"
GITHUB_ACCEPT = "application/vnd.github+json"

# jsDelivr mirror of GitHub repositories
DEFAULT_CDN_BASE = "https://cdn.jsdelivr.net/gh"

# Block types carrying a MediaRef that the walker migrates
MEDIA_BLOCK_TYPES = ("image",)

# Pillow format name -> file extension
FORMAT_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "GIF": "gif",
    "WEBP": "webp",
    "BMP": "bmp",
    "TIFF": "tiff",
    "ICO": "ico",
    "MPO": "jpg",
}

# Lossy encoders Pillow can target when downscaling
LOSSY_FORMATS = {
    "webp": "WEBP",
    "jpg": "JPEG",
    "jpeg": "JPEG",
}
