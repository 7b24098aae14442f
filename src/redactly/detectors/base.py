"""Abstract base class for PII and signature detectors."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.entities import DetectionResult


class BaseDetector(ABC):
    """Interface for detection services."""

    @abstractmethod
    async def detect(
        self,
        filename: str,
        content: bytes,
        mime_type: Optional[str] = None,
        use_llm: bool = True,
    ) -> DetectionResult:
        """
        Detect PII text spans and signature regions in an image.

        Args:
            filename: Original file name, forwarded to the service.
            content: Encoded image bytes.
            mime_type: MIME type of ``content``.
            use_llm: Whether the service should use LLM-assisted detection.

        Returns:
            DetectionResult with freshly identified entities and OCR text.

        Raises:
            TransportError: If the service is unreachable or answers non-2xx.
            SchemaError: If the response body has an invalid shape.
        """

    async def aclose(self) -> None:
        """Release any held connections."""
