"""Abstract base class for redaction suggestion services."""

from abc import ABC, abstractmethod

from ..models.wire import SuggestionRequest


class BaseSuggester(ABC):
    """Interface for services recommending which regions to redact."""

    @abstractmethod
    async def suggest(self, request: SuggestionRequest) -> dict:
        """
        Ask the service which entities and regions should be redacted.

        Args:
            request: Validated request with document text, PII entities,
                signature regions and the free-text criteria.

        Returns:
            The decoded response payload, not yet schema-validated.

        Raises:
            TransportError: If the service call fails.
            SchemaError: If the response is not a JSON object.
        """
