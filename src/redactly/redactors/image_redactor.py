"""Image redaction compositing using Pillow."""

import io
import logging
import struct
from typing import Optional, Sequence, Tuple

from PIL import Image, JpegImagePlugin, UnidentifiedImageError

from .base import BaseRedactor
from ..exceptions import DecodeError, EncodeError
from ..models.entities import (
    MAX_PIXELATE_AMOUNT,
    MIN_PIXELATE_AMOUNT,
    RedactionOptions,
    RedactionStyle,
)
from ..models.geometry import BoundingBox, normalize

logger = logging.getLogger(__name__)

MIME_TO_FORMAT = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
    "image/bmp": "BMP",
    "image/x-ms-bmp": "BMP",
    "image/tiff": "TIFF",
}

FORMAT_TO_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}

SOLID_FILL_RGB = (0, 0, 0)

# Bounds on the downsample factor: blocks never exceed the region and are
# never finer than a few pixels.
MIN_PIXELATE_SCALE = 0.02
MAX_PIXELATE_SCALE = 0.50

# Metadata carried over from the source so the output matches it.
_PRESERVED_INFO = ("icc_profile", "exif", "dpi")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def pixelate_scale(pixelate_amount: float) -> float:
    """Downsample factor for a pixelation amount given in percent."""
    amount = _clamp(pixelate_amount, MIN_PIXELATE_AMOUNT, MAX_PIXELATE_AMOUNT) / 100
    return _clamp(amount, MIN_PIXELATE_SCALE, MAX_PIXELATE_SCALE)


def read_dimensions(content: bytes) -> Tuple[int, int, Optional[str]]:
    """Return ``(width, height, format)`` from an image header without decoding pixels."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            width, height = image.size
            fmt = image.format
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Could not read image: {e}") from e
    if width == 0 or height == 0:
        raise DecodeError("Could not read image dimensions.")
    return width, height, fmt


def is_lossless_webp(content: bytes) -> bool:
    """True when a WEBP file stores its image in a ``VP8L`` (lossless) chunk."""
    if content[:4] != b"RIFF" or content[8:12] != b"WEBP":
        return False
    offset = 12
    while offset + 8 <= len(content):
        chunk = content[offset:offset + 4]
        if chunk == b"VP8L":
            return True
        if chunk == b"VP8 ":
            return False
        (size,) = struct.unpack("<I", content[offset + 4:offset + 8])
        offset += 8 + size + (size & 1)
    return False


def _working_mode(image: Image.Image) -> str:
    if image.mode in ("RGBA", "LA", "PA"):
        return "RGBA"
    if image.mode == "P" and "transparency" in image.info:
        return "RGBA"
    return "RGB"


def _canvas(original: Image.Image) -> Image.Image:
    """Copy of *original* to paste redacted patches onto.

    Palette images are expanded to RGB(A) first; a palette that lacks the
    redaction colour would otherwise map it to some other visible colour.
    """
    if original.mode == "P":
        return original.convert(_working_mode(original))
    return original.copy()


class ImageRedactor(BaseRedactor):
    """Obscure rectangular regions of a raster image.

    Three styles, selected by ``RedactionOptions.style``:

    * **solid_fill**: black overlay alpha-blended at ``opacity``; values
      below 1 let the underlying content show through.
    * **color_fill**: opaque overwrite with ``fill_color``.
    * **pixelate**: nearest-neighbour downsample then upsample of the
      region, producing visible blocks.

    Each region is rendered from the original image and pasted onto a copy
    in list order, so overlapping regions never blend or compound.
    """

    def __init__(self, jpeg_quality: int = 95, webp_quality: int = 95):
        self.jpeg_quality = jpeg_quality
        self.webp_quality = webp_quality

    def redact(
        self,
        content: bytes,
        mime_type: Optional[str],
        regions: Sequence[BoundingBox],
        options: RedactionOptions,
    ) -> bytes:
        original = self._decode(content)
        fmt = self._output_format(original, mime_type)

        applied = 0
        try:
            output = _canvas(original)
            for region in regions:
                box = normalize(region, original.width, original.height)
                if box.is_empty:
                    continue
                rect = box.to_pixel_rect()
                patch = self._render_patch(original, rect, options)
                output.paste(patch.convert(output.mode), rect[:2])
                applied += 1
        except (OSError, ValueError) as e:
            raise EncodeError(f"Could not composite {original.mode} image: {e}") from e

        logger.debug(
            "Composited %d/%d regions (%s) on %dx%d %s image",
            applied,
            len(regions),
            options.style.value,
            original.width,
            original.height,
            fmt,
        )
        return self._encode(output, original, fmt, lossless=is_lossless_webp(content))

    @staticmethod
    def _decode(content: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(content))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            raise DecodeError(f"Could not read image: {e}") from e
        if image.width == 0 or image.height == 0:
            raise DecodeError("Could not read image dimensions.")
        return image

    @staticmethod
    def _output_format(image: Image.Image, mime_type: Optional[str]) -> str:
        fmt = MIME_TO_FORMAT.get((mime_type or "").lower()) or image.format
        if not fmt:
            raise EncodeError(f"Unsupported output format for MIME type {mime_type!r}")
        return fmt

    def _render_patch(
        self,
        original: Image.Image,
        rect: Tuple[int, int, int, int],
        options: RedactionOptions,
    ) -> Image.Image:
        mode = _working_mode(original)
        patch = original.crop(rect).convert(mode)

        if options.style is RedactionStyle.PIXELATE:
            patch = self._pixelate(patch, options.pixelate_amount)
        elif options.style is RedactionStyle.COLOR_FILL:
            color = options.fill_rgb + ((255,) if mode == "RGBA" else ())
            patch = Image.new(mode, patch.size, color)
        else:
            patch = self._blend(patch, SOLID_FILL_RGB, options.opacity)

        return patch

    @staticmethod
    def _blend(patch: Image.Image, color: Tuple[int, int, int], opacity: float) -> Image.Image:
        """Alpha-composite a flat colour over *patch*."""
        base = patch.convert("RGBA")
        overlay = Image.new("RGBA", base.size, color + (_round_half_up(opacity * 255),))
        return Image.alpha_composite(base, overlay).convert(patch.mode)

    @staticmethod
    def _pixelate(patch: Image.Image, pixelate_amount: float) -> Image.Image:
        scale = pixelate_scale(pixelate_amount)
        width, height = patch.size
        small = (
            max(1, _round_half_up(width * scale)),
            max(1, _round_half_up(height * scale)),
        )
        return patch.resize(small, Image.Resampling.NEAREST).resize(
            (width, height), Image.Resampling.NEAREST
        )

    def _encode(
        self, output: Image.Image, original: Image.Image, fmt: str, lossless: bool = False
    ) -> bytes:
        params = {key: original.info[key] for key in _PRESERVED_INFO if key in original.info}
        if fmt == "JPEG":
            params["quality"] = self.jpeg_quality
            if isinstance(original, JpegImagePlugin.JpegImageFile):
                params["subsampling"] = JpegImagePlugin.get_sampling(original)
        elif fmt == "WEBP":
            if lossless:
                # exact keeps RGB values under fully transparent pixels
                params.update(lossless=True, exact=True)
            else:
                params["quality"] = self.webp_quality
        # A palette index or single-colour key only means something in the source mode.
        if fmt in ("PNG", "GIF") and output.mode == original.mode and "transparency" in original.info:
            params["transparency"] = original.info["transparency"]

        buffer = io.BytesIO()
        try:
            output.save(buffer, format=fmt, **params)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise EncodeError(f"Could not encode redacted image as {fmt}: {e}") from e
        return buffer.getvalue()
