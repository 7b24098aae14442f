"""Pydantic models for the detection and suggestion service wire formats."""

from typing import Annotated, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .geometry import BoundingBox


# ---------------------------------------------------------------------------
# Detection service: POST /process_document
# ---------------------------------------------------------------------------


class WireBox(BaseModel):
    x1: float
    y1: float
    x2: float
    y2: float

    def to_box(self) -> BoundingBox:
        return BoundingBox(x1=self.x1, y1=self.y1, x2=self.x2, y2=self.y2)


class WirePIIEntity(BaseModel):
    type: str
    value: str
    confidence: float = 0.0
    bbox: WireBox


class WireSignature(BaseModel):
    bbox: WireBox
    confidence: float = 0.0


class OcrPosition(BaseModel):
    top_left: Tuple[float, float]
    top_right: Tuple[float, float]
    bottom_right: Tuple[float, float]
    bottom_left: Tuple[float, float]


class OcrBlock(BaseModel):
    text: str
    confidence: float = 0.0
    position: Optional[OcrPosition] = None


class OcrPage(BaseModel):
    page_number: int
    blocks: List[OcrBlock] = Field(default_factory=list)


class OcrResult(BaseModel):
    pages: List[OcrPage] = Field(default_factory=list)


class ProcessDocumentResponse(BaseModel):
    pii_detection: Optional[List[WirePIIEntity]] = None
    signatures: Optional[List[WireSignature]] = None
    ocr: Optional[OcrResult] = None

    def ocr_text(self) -> str:
        """Every OCR block's text, one per line, in page and block order."""
        if self.ocr is None:
            return ""
        return "".join(
            block.text + "\n" for page in self.ocr.pages for block in page.blocks
        )


# ---------------------------------------------------------------------------
# Suggestion service
# ---------------------------------------------------------------------------

Coordinates = Annotated[List[float], Field(min_length=4, max_length=4)]


class SuggestionPIIEntity(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str
    text: str
    boundingBox: Coordinates


class SuggestionSignatureRegion(BaseModel):
    model_config = ConfigDict(extra="forbid")

    boundingBox: Coordinates


SuggestedItem = Annotated[
    Union[SuggestionPIIEntity, SuggestionSignatureRegion],
    Field(union_mode="left_to_right"),
]


class SuggestionRequest(BaseModel):
    documentText: str
    piiEntities: List[SuggestionPIIEntity]
    signatureRegions: List[SuggestionSignatureRegion]
    criteria: str


class SuggestionResponse(BaseModel):
    suggestedRedactions: List[SuggestedItem]
    reasoning: str
