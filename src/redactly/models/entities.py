"""Data models for the document image redaction workflow."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

from PIL import ImageColor

from .geometry import BoundingBox

SIGNATURE_LABEL = "Signature"

# Pixelation amount bounds, in percent of the region size.
MIN_PIXELATE_AMOUNT = 2
MAX_PIXELATE_AMOUNT = 100


class EntityKind(Enum):
    """Kinds of region the detection service reports."""

    PII = "pii"
    SIGNATURE = "signature"


class FileStatus(Enum):
    """Lifecycle of one uploaded file."""

    PENDING = "pending"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    REDACTING = "redacting"
    REDACTED = "redacted"


class RedactionStyle(Enum):
    """How selected regions are obscured."""

    SOLID_FILL = "solid_fill"
    COLOR_FILL = "color_fill"
    PIXELATE = "pixelate"


@dataclass(frozen=True)
class Entity:
    """A detected PII span or signature region."""

    id: str
    kind: EntityKind
    subtype: str  # PII type (NAME, EMAIL, ...) or SIGNATURE
    text: str
    box: BoundingBox
    confidence: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "type": self.subtype,
            "text": self.text,
            "bbox": self.box.to_dict(),
            "confidence": self.confidence,
        }


def parse_color(value: str) -> Tuple[int, int, int]:
    """Parse a CSS-style colour (``#3F51B5``, ``red``, ``rgb(...)``) to RGB."""
    try:
        rgb = ImageColor.getrgb(value)
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid fill color: {value!r}") from e
    return rgb[0], rgb[1], rgb[2]


@dataclass(frozen=True)
class RedactionOptions:
    """Style configuration applied uniformly to every region of one redaction."""

    style: RedactionStyle = RedactionStyle.SOLID_FILL
    fill_color: str = "#3F51B5"  # used by COLOR_FILL
    opacity: float = 1.0  # used by SOLID_FILL
    pixelate_amount: float = 10  # used by PIXELATE, percent

    def __post_init__(self):
        if not isinstance(self.style, RedactionStyle):
            object.__setattr__(self, "style", RedactionStyle(self.style))
        if not 0.0 <= self.opacity <= 1.0:
            raise ValueError(f"Opacity must be between 0 and 1, got {self.opacity}")
        parse_color(self.fill_color)

    @property
    def fill_rgb(self) -> Tuple[int, int, int]:
        return parse_color(self.fill_color)

    def to_dict(self) -> dict:
        return {
            "style": self.style.value,
            "fill_color": self.fill_color,
            "opacity": self.opacity,
            "pixelate_amount": self.pixelate_amount,
        }


@dataclass
class DetectionResult:
    """Entities and OCR output returned for one processed image."""

    entities: Tuple[Entity, ...] = field(default_factory=tuple)
    ocr_text: str = ""
    raw_response: str = ""

    @property
    def pii_entities(self) -> Tuple[Entity, ...]:
        return tuple(e for e in self.entities if e.kind is EntityKind.PII)

    @property
    def signature_entities(self) -> Tuple[Entity, ...]:
        return tuple(e for e in self.entities if e.kind is EntityKind.SIGNATURE)
