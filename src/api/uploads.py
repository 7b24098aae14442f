"""Validation of uploaded image files."""

import logging
from dataclasses import dataclass
from typing import Optional

import filetype

from .config import get_settings

logger = logging.getLogger(__name__)


ALLOWED_IMAGE_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/gif",
    "image/bmp",
    "image/tiff",
}


@dataclass
class ValidatedUpload:
    filename: str
    content: bytes
    mime_type: str


class UploadValidator:
    """Checks uploads by sniffing their content, never trusting the declared type."""

    def __init__(self, max_file_size_bytes: Optional[int] = None):
        """
        Initialize the validator.

        Args:
            max_file_size_bytes: Size limit. Uses settings if not provided.
        """
        self._max_bytes = max_file_size_bytes

    @property
    def max_bytes(self) -> int:
        if self._max_bytes is None:
            self._max_bytes = get_settings().max_file_size_bytes
        return self._max_bytes

    @staticmethod
    def sniff_mime_type(content: bytes) -> Optional[str]:
        """Detect the MIME type from magic bytes, or None if unknown."""
        kind = filetype.guess(content)
        return kind.mime if kind is not None else None

    def validate(self, filename: str, content: bytes) -> ValidatedUpload:
        """
        Validate one uploaded file.

        Args:
            filename: Name the client sent
            content: Raw file bytes

        Returns:
            The upload with its sniffed MIME type

        Raises:
            ValueError: If the file is empty, too large, or not a supported image
        """
        if not content:
            raise ValueError(f"File is empty: {filename}")

        if len(content) > self.max_bytes:
            limit_mb = self.max_bytes / (1024 * 1024)
            raise ValueError(
                f"File size ({len(content)} bytes) exceeds maximum allowed size of {limit_mb:g}MB: {filename}"
            )

        mime_type = self.sniff_mime_type(content)
        if mime_type is None:
            raise ValueError(f"File type could not be determined: {filename}")
        if mime_type not in ALLOWED_IMAGE_MIME_TYPES:
            raise ValueError(
                f"Unsupported file type {mime_type}: {filename}. Allowed: PNG, JPEG, WEBP, GIF, BMP, TIFF"
            )

        logger.debug("Validated upload %s (%s, %d bytes)", filename, mime_type, len(content))
        return ValidatedUpload(filename=filename, content=content, mime_type=mime_type)
