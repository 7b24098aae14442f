"""PII and signature detection clients."""

from .base import BaseDetector
from .remote_detector import RemoteDetector, build_entities

__all__ = [
    "BaseDetector",
    "RemoteDetector",
    "build_entities",
]
