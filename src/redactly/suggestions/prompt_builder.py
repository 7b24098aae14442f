"""Prompt building strategy for LLM redaction suggestions."""

import json
from abc import ABC, abstractmethod
from typing import List

from ..models.wire import SuggestionRequest

DEFAULT_CRITERIA = (
    "Redact all personally identifiable information (PII) like names, emails, "
    "and phone numbers, but keep addresses if they are part of a corporate "
    "letterhead. Always redact signatures."
)


def _format_box(coords: List[float]) -> str:
    return json.dumps(coords)


class BasePromptBuilder(ABC):
    """Interface for prompt construction strategies."""

    @abstractmethod
    def build(self, request: SuggestionRequest) -> List[dict]:
        """Build chat messages for one suggestion request."""


class SuggestionPromptBuilder(BasePromptBuilder):
    """Builds the redaction-suggestion prompt from detected regions and a policy."""

    def build(self, request: SuggestionRequest) -> List[dict]:
        pii_lines = "\n".join(
            f"- Type: {e.type}, Text: {e.text}, Bounding Box: {_format_box(e.boundingBox)}"
            for e in request.piiEntities
        ) or "(none)"
        signature_lines = "\n".join(
            f"- Bounding Box: {_format_box(s.boundingBox)}" for s in request.signatureRegions
        ) or "(none)"

        system_prompt = """You are an AI assistant that provides intelligent redaction suggestions for documents based on specific criteria.

Given the document text, the detected PII entities, the detected signature regions, and the redaction criteria, decide which entities and regions should be redacted.

RULES:
1. Only suggest items from the lists you are given. Never invent new regions.
2. Copy each suggested bounding box EXACTLY as given: four numbers [x1, y1, x2, y2].
3. A suggested PII entity keeps its "type" and "text"; a suggested signature region has only "boundingBox".
4. Explain your reasoning in one short paragraph.

Respond with a JSON object in this exact format:
{
  "suggestedRedactions": [
    {"type": "EMAIL", "text": "jane@example.com", "boundingBox": [100, 100, 300, 120]},
    {"boundingBox": [420, 500, 610, 560]}
  ],
  "reasoning": "Why these items should be redacted"
}

If nothing should be redacted, respond with: {"suggestedRedactions": [], "reasoning": "..."}"""

        user_prompt = (
            f"Document Text:\n---\n{request.documentText}\n---\n\n"
            f"PII Entities:\n{pii_lines}\n\n"
            f"Signature Regions:\n{signature_lines}\n\n"
            f"Redaction Criteria:\n{request.criteria}\n\n"
            f"Return the suggested redactions as JSON."
        )

        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
