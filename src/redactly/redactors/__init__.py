"""Image redaction compositing."""

from .base import BaseRedactor
from .image_redactor import (
    FORMAT_TO_MIME,
    MIME_TO_FORMAT,
    ImageRedactor,
    pixelate_scale,
    read_dimensions,
)

__all__ = [
    "BaseRedactor",
    "ImageRedactor",
    "FORMAT_TO_MIME",
    "MIME_TO_FORMAT",
    "pixelate_scale",
    "read_dimensions",
]
