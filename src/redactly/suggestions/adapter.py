"""Map entities to the suggestion service and its answers back to entity ids."""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Sequence

from pydantic import ValidationError

from .base import BaseSuggester
from ..exceptions import SchemaError, SuggestionError, TransportError
from ..models.entities import Entity, EntityKind
from ..models.geometry import DEFAULT_EPSILON, BoundingBox, equals, normalize
from ..models.wire import (
    SuggestionPIIEntity,
    SuggestionRequest,
    SuggestionResponse,
    SuggestionSignatureRegion,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Suggestion:
    """Entity ids recommended for redaction and the service's explanation."""

    recommended_ids: FrozenSet[str] = field(default_factory=frozenset)
    rationale: str = ""
    dropped: int = 0  # returned boxes that matched no local entity


def build_request(document_text: str, entities: Sequence[Entity], criteria: str) -> SuggestionRequest:
    """Split entities into the PII and signature shapes of the wire contract."""
    return SuggestionRequest(
        documentText=document_text,
        piiEntities=[
            SuggestionPIIEntity(type=e.subtype, text=e.text, boundingBox=e.box.to_list())
            for e in entities
            if e.kind is EntityKind.PII
        ],
        signatureRegions=[
            SuggestionSignatureRegion(boundingBox=e.box.to_list())
            for e in entities
            if e.kind is EntityKind.SIGNATURE
        ],
        criteria=criteria,
    )


class SuggestionAdapter:
    """Ask a suggester which entities to redact and reconcile by geometry.

    The suggestion service is stateless and only echoes coordinates, so a
    returned box is matched to every local entity whose normalized box is
    geometrically equal to it. Boxes matching nothing are dropped.
    """

    def __init__(self, suggester: BaseSuggester, epsilon: float = DEFAULT_EPSILON):
        self.suggester = suggester
        self.epsilon = epsilon

    async def suggest(
        self,
        document_text: str,
        entities: Sequence[Entity],
        criteria: str,
        image_width: float,
        image_height: float,
    ) -> Suggestion:
        try:
            request = build_request(document_text, entities, criteria)
        except ValidationError as e:
            raise SuggestionError(f"Invalid suggestion request: {e}") from e

        try:
            payload = await self.suggester.suggest(request)
            response = SuggestionResponse.model_validate(payload)
        except (TransportError, SchemaError) as e:
            raise SuggestionError(f"Failed to get AI suggestions: {e}") from e
        except ValidationError as e:
            raise SuggestionError(f"Failed to get AI suggestions: invalid response: {e}") from e

        returned = [BoundingBox.from_list(item.boundingBox) for item in response.suggestedRedactions]
        recommended, dropped = self.reconcile(returned, entities, image_width, image_height)
        logger.info(
            "Suggestion service recommended %d items; %d matched, %d dropped",
            len(returned),
            len(recommended),
            dropped,
        )
        return Suggestion(recommended_ids=recommended, rationale=response.reasoning, dropped=dropped)

    def reconcile(
        self,
        boxes: Sequence[BoundingBox],
        entities: Sequence[Entity],
        image_width: float,
        image_height: float,
    ) -> tuple[FrozenSet[str], int]:
        """Return the ids of entities matching *boxes* and the count of unmatched boxes."""
        local = [(e.id, normalize(e.box, image_width, image_height)) for e in entities]
        matched: List[str] = []
        dropped = 0
        for box in boxes:
            target = normalize(box, image_width, image_height)
            hits = [entity_id for entity_id, b in local if equals(b, target, self.epsilon)]
            if hits:
                matched.extend(hits)
            else:
                dropped += 1
        return frozenset(matched), dropped
