"""Redactly: document image PII redaction."""

from .pipeline import RedactionPipeline
from .factory import build_pipeline
from .queue import RejectedFile, SessionQueue
from .selection import SelectionSet
from .session import FileSession
from .models.entities import (
    DetectionResult,
    Entity,
    EntityKind,
    FileStatus,
    RedactionOptions,
    RedactionStyle,
)
from .models.geometry import BoundingBox

__all__ = [
    "RedactionPipeline",
    "build_pipeline",
    "RejectedFile",
    "SessionQueue",
    "SelectionSet",
    "FileSession",
    "DetectionResult",
    "Entity",
    "EntityKind",
    "FileStatus",
    "RedactionOptions",
    "RedactionStyle",
    "BoundingBox",
]
