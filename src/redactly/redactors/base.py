"""Abstract base class for image redactors."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..models.entities import RedactionOptions
from ..models.geometry import BoundingBox


class BaseRedactor(ABC):
    """Interface for redaction compositing engines."""

    @abstractmethod
    def redact(
        self,
        content: bytes,
        mime_type: Optional[str],
        regions: Sequence[BoundingBox],
        options: RedactionOptions,
    ) -> bytes:
        """
        Obscure regions of an encoded image and return the re-encoded result.

        Args:
            content: Original encoded image bytes (never modified).
            mime_type: MIME type of ``content``; the output uses the same format.
            regions: Normalized boxes to obscure, painted in list order.
            options: Style applied uniformly to every region.

        Returns:
            Newly encoded image bytes with the same dimensions and format.

        Raises:
            DecodeError: If the image cannot be decoded or is empty.
            EncodeError: If the result cannot be written back to the format.
        """
