"""Pydantic schemas for the Redactly API."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from redactly.models.entities import (
    MAX_PIXELATE_AMOUNT,
    MIN_PIXELATE_AMOUNT,
    EntityKind,
    RedactionOptions,
    RedactionStyle,
)
from redactly.session import FileSession
from redactly.suggestions.prompt_builder import DEFAULT_CRITERIA


class BoundingBoxResponse(BaseModel):
    x1: float
    y1: float
    x2: float
    y2: float


class EntityResponse(BaseModel):
    id: str
    kind: EntityKind
    type: str
    text: str
    bbox: BoundingBoxResponse
    confidence: float = 0.0
    selected: bool = False


class OptionsInput(BaseModel):
    style: RedactionStyle = RedactionStyle.SOLID_FILL
    fill_color: str = "#3F51B5"
    opacity: float = Field(1.0, ge=0.0, le=1.0)
    pixelate_amount: float = Field(10, ge=MIN_PIXELATE_AMOUNT, le=MAX_PIXELATE_AMOUNT)

    def to_options(self) -> RedactionOptions:
        """Raises ValueError for colours PIL cannot parse."""
        return RedactionOptions(
            style=self.style,
            fill_color=self.fill_color,
            opacity=self.opacity,
            pixelate_amount=self.pixelate_amount,
        )


class SessionSummary(BaseModel):
    id: str
    filename: str
    mime_type: Optional[str] = None
    status: str
    use_llm: bool
    width: int
    height: int
    pii_count: int = 0
    signature_count: int = 0
    selected_count: int = 0
    error: Optional[str] = None
    has_output: bool = False
    created_at: datetime

    @classmethod
    def from_session(cls, session: FileSession) -> "SessionSummary":
        return cls.model_validate(session.snapshot())


class SessionDetail(SessionSummary):
    options: OptionsInput
    entities: List[EntityResponse] = Field(default_factory=list)
    selected_ids: List[str] = Field(default_factory=list)
    ocr_text: str = ""

    @classmethod
    def from_session(cls, session: FileSession) -> "SessionDetail":
        entities = [
            EntityResponse(**entity.to_dict(), selected=entity.id in session.selection)
            for entity in session.entities
        ]
        return cls.model_validate(
            {**session.snapshot(), "entities": entities, "ocr_text": session.ocr_text}
        )


class RejectedFileResponse(BaseModel):
    filename: str
    reason: str


class UploadResponse(BaseModel):
    sessions: List[SessionSummary] = Field(default_factory=list)
    rejected: List[RejectedFileResponse] = Field(default_factory=list)


class ToggleInput(BaseModel):
    entity_id: str


class BulkSelectionInput(BaseModel):
    kind: Optional[EntityKind] = None


class SelectionResponse(BaseModel):
    session_id: str
    selected_ids: List[str]


class SuggestionInput(BaseModel):
    criteria: str = Field(DEFAULT_CRITERIA, min_length=1)


class SuggestionResponse(BaseModel):
    session_id: str
    recommended_ids: List[str]
    reasoning: str = ""
    unmatched_boxes: int = 0


class DashboardResponse(BaseModel):
    total_sessions: int
    capacity: int
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_entity_type: Dict[str, int] = Field(default_factory=dict)
    total_entities: int = 0
    total_selected: int = 0
    total_redacted: int = 0
    recent_sessions: List[SessionSummary] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
    message: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
    llm_provider: str = ""
    suggestions_available: bool = False


class ReadyzResponse(BaseModel):
    status: str
    checks: dict[str, str] = Field(default_factory=dict)
