"""Data models for the redaction workflow."""

from .geometry import DEFAULT_EPSILON, BoundingBox, equals, normalize
from .entities import (
    SIGNATURE_LABEL,
    DetectionResult,
    Entity,
    EntityKind,
    FileStatus,
    RedactionOptions,
    RedactionStyle,
    parse_color,
)

__all__ = [
    "DEFAULT_EPSILON",
    "BoundingBox",
    "equals",
    "normalize",
    "SIGNATURE_LABEL",
    "DetectionResult",
    "Entity",
    "EntityKind",
    "FileStatus",
    "RedactionOptions",
    "RedactionStyle",
    "parse_color",
]
