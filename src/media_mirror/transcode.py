"""Size-gated transcode step.

Media under the size threshold is stored byte-for-byte. Anything at or
above it is downscaled and re-encoded to a lossy format so the stored
artifact stays small. The gate is a pure function of the input bytes and
the configuration.
"""

import io
import logging
from typing import NamedTuple, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from .config import MirrorConfig
from .constants import FORMAT_EXTENSIONS, LOSSY_FORMATS
from .errors import TranscodeError
from .utils import humanize_size

logger = logging.getLogger(__name__)

_DECODE_ERRORS = (
    UnidentifiedImageError,
    OSError,
    SyntaxError,
    EOFError,
    ValueError,
    Image.DecompressionBombError,
)


class GateResult(NamedTuple):
    """Bytes to store and the extension to store them under."""

    data: bytes
    extension: str
    transcoded: bool


def sniff_extension(data: bytes) -> Optional[str]:
    """Detect the image format from its bytes.

    The source URL's suffix is never consulted: hosted URLs are opaque and
    external ones frequently lie.

    Returns:
        File extension, or None if the bytes are not a known image format
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            return FORMAT_EXTENSIONS.get(img.format or "")
    except _DECODE_ERRORS:
        return None


def _prepare_mode(img: Image.Image, fmt: str) -> Image.Image:
    """Convert to a pixel mode the target encoder accepts."""
    has_alpha = img.mode in ("RGBA", "LA", "PA") or (
        img.mode == "P" and "transparency" in img.info
    )
    if fmt == "JPEG":
        if has_alpha:
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        return img if img.mode == "RGB" else img.convert("RGB")

    if img.mode in ("RGB", "RGBA"):
        return img
    return img.convert("RGBA" if has_alpha else "RGB")


class TranscodeGate:
    """Threshold-gated downscale and lossy re-encode."""

    def __init__(self, config: MirrorConfig):
        self.config = config
        self.target_format = LOSSY_FORMATS[config.transcode_format]
        self.target_extension = FORMAT_EXTENSIONS[self.target_format]

    def gate(self, data: bytes) -> GateResult:
        """
        Bound the size of ``data``.

        Args:
            data: Raw downloaded bytes

        Returns:
            GateResult; on re-encode failure the original bytes come back
            with their sniffed (or fallback) extension
        """
        extension = sniff_extension(data) or self.config.fallback_extension
        if len(data) < self.config.size_threshold:
            return GateResult(data, extension, False)

        try:
            encoded = self.transcode(data)
        except TranscodeError as e:
            logger.warning("Keeping original bytes: %s", e)
            return GateResult(data, extension, False)

        logger.info(
            "Transcoded %s -> %s (%s)",
            humanize_size(len(data)),
            humanize_size(len(encoded)),
            self.target_extension,
        )
        return GateResult(encoded, self.target_extension, True)

    def transcode(self, data: bytes) -> bytes:
        """
        Re-encode to the lossy target format, capping the longer side.

        Raises:
            TranscodeError: If the image cannot be decoded or encoded
        """
        bound = self.config.max_dimension
        try:
            with Image.open(io.BytesIO(data)) as source:
                img = ImageOps.exif_transpose(source)
                # thumbnail() keeps aspect ratio and never enlarges
                img.thumbnail((bound, bound), Image.Resampling.LANCZOS)
                img = _prepare_mode(img, self.target_format)

                buffer = io.BytesIO()
                options = {"quality": self.config.transcode_quality}
                if self.target_format == "JPEG":
                    options["optimize"] = True
                img.save(buffer, format=self.target_format, **options)
                return buffer.getvalue()
        except _DECODE_ERRORS as e:
            raise TranscodeError(f"Cannot re-encode {humanize_size(len(data))} image: {e}") from e
