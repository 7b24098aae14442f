"""Per-file session state machine: upload, detect, select, redact."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from .exceptions import (
    EntityNotFoundError,
    InvalidStateError,
    MissingOriginalError,
    NoSelectionError,
)
from .models.entities import (
    DetectionResult,
    Entity,
    EntityKind,
    FileStatus,
    RedactionOptions,
)
from .models.geometry import BoundingBox, normalize
from .selection import SelectionSet

logger = logging.getLogger(__name__)

# Legal status changes; every transition is checked against this table.
TRANSITIONS = {
    FileStatus.PENDING: frozenset({FileStatus.UPLOADING}),
    FileStatus.UPLOADING: frozenset({FileStatus.PROCESSING, FileStatus.ERROR}),
    FileStatus.PROCESSING: frozenset({FileStatus.COMPLETED, FileStatus.ERROR}),
    FileStatus.COMPLETED: frozenset({FileStatus.REDACTING}),
    FileStatus.REDACTING: frozenset({FileStatus.REDACTED, FileStatus.COMPLETED}),
    FileStatus.ERROR: frozenset(),
    FileStatus.REDACTED: frozenset(),
}


class FileSession:
    """One uploaded image and everything derived from it.

    The session owns its entity list and selection. The original bytes are
    kept for the whole lifetime because every redaction is composited from
    the original, never from an earlier redacted output.
    """

    def __init__(
        self,
        filename: str,
        content: Optional[bytes],
        mime_type: Optional[str] = None,
        width: int = 0,
        height: int = 0,
        use_llm: bool = True,
        options: Optional[RedactionOptions] = None,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or str(uuid.uuid4())
        self.filename = filename
        self.mime_type = mime_type
        self.content = content
        self.width = width
        self.height = height
        self._use_llm = use_llm
        self.options = options or RedactionOptions()
        self.created_at = datetime.now(timezone.utc)

        self.status = FileStatus.PENDING
        self.history: List[FileStatus] = [FileStatus.PENDING]
        self.entities: Tuple[Entity, ...] = ()
        self.selection = SelectionSet()
        self.output: Optional[bytes] = None
        self.error: Optional[str] = None
        self.ocr_text = ""
        self.raw_response = ""
        self.removed = False

    @property
    def use_llm(self) -> bool:
        return self._use_llm

    @property
    def pii_entities(self) -> Tuple[Entity, ...]:
        return tuple(e for e in self.entities if e.kind is EntityKind.PII)

    @property
    def signature_entities(self) -> Tuple[Entity, ...]:
        return tuple(e for e in self.entities if e.kind is EntityKind.SIGNATURE)

    @property
    def output_filename(self) -> str:
        return f"redacted-{self.filename}"

    def __repr__(self) -> str:
        return f"FileSession(id={self.id!r}, filename={self.filename!r}, status={self.status.value})"

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, target: FileStatus) -> None:
        if self.removed:
            raise InvalidStateError(f"Session {self.id} has been removed")
        if target not in TRANSITIONS[self.status]:
            raise InvalidStateError(
                f"Cannot move session from {self.status.value} to {target.value}"
            )
        logger.debug("Session %s: %s -> %s", self.id, self.status.value, target.value)
        self.status = target
        self.history.append(target)

    def begin_upload(self) -> None:
        self._transition(FileStatus.UPLOADING)

    def mark_uploaded(self) -> None:
        self._transition(FileStatus.PROCESSING)

    def complete_detection(self, result: DetectionResult) -> None:
        """Store detected entities and select every one of them."""
        self._transition(FileStatus.COMPLETED)
        self.entities = tuple(result.entities)
        self.selection = SelectionSet(e.id for e in self.entities)
        self.ocr_text = result.ocr_text
        self.raw_response = result.raw_response
        self.error = None

    def fail_detection(self, message: str) -> None:
        self._transition(FileStatus.ERROR)
        self.error = message

    def begin_redaction(self, options: Optional[RedactionOptions] = None) -> None:
        """Enter REDACTING, or reject the action leaving the session unchanged.

        *options* replace the current ones only once every guard has passed.
        """
        if self.status is not FileStatus.COMPLETED:
            raise InvalidStateError(f"Cannot redact while session is {self.status.value}")
        if not self.entities or not self.selection:
            raise NoSelectionError("Please select at least one item to redact.")
        if not self.content:
            raise MissingOriginalError(
                "Original file data is missing. Please re-upload the file to apply redactions."
            )
        self._transition(FileStatus.REDACTING)
        if options is not None:
            self.options = options
        self.error = None

    def complete_redaction(self, output: bytes) -> None:
        self._transition(FileStatus.REDACTED)
        self.output = output

    def fail_redaction(self, message: str) -> None:
        """Return to COMPLETED so the user can retry with other selections or options."""
        self._transition(FileStatus.COMPLETED)
        self.error = f"Redaction failed: {message}"

    # ------------------------------------------------------------------
    # Selection and options
    # ------------------------------------------------------------------

    def _require_editable(self) -> None:
        if self.status is not FileStatus.COMPLETED:
            raise InvalidStateError(
                f"Selections cannot be changed while session is {self.status.value}"
            )

    def entity(self, entity_id: str) -> Entity:
        for e in self.entities:
            if e.id == entity_id:
                return e
        raise EntityNotFoundError(f"Entity {entity_id} not found in session {self.id}")

    def _entity_ids(self, kind: Optional[EntityKind] = None) -> List[str]:
        return [e.id for e in self.entities if kind is None or e.kind is kind]

    def toggle(self, entity_id: str) -> SelectionSet:
        self._require_editable()
        self.entity(entity_id)
        self.selection = self.selection.toggle(entity_id)
        return self.selection

    def select_all(self, kind: Optional[EntityKind] = None) -> SelectionSet:
        self._require_editable()
        self.selection = self.selection.select_all(self._entity_ids(kind))
        return self.selection

    def deselect_all(self, kind: Optional[EntityKind] = None) -> SelectionSet:
        self._require_editable()
        self.selection = self.selection.deselect_all(self._entity_ids(kind))
        return self.selection

    def replace_selection(self, entity_ids: Iterable[str]) -> SelectionSet:
        self._require_editable()
        ids = set(entity_ids)
        unknown = ids - set(self._entity_ids())
        if unknown:
            raise EntityNotFoundError(f"Unknown entity ids: {', '.join(sorted(unknown))}")
        self.selection = SelectionSet.replace(ids)
        return self.selection

    def set_options(self, options: RedactionOptions) -> None:
        if self.status in (FileStatus.REDACTING, FileStatus.REDACTED):
            raise InvalidStateError(
                f"Redaction options cannot be changed while session is {self.status.value}"
            )
        self.options = options

    def selected_boxes(self) -> List[BoundingBox]:
        """Boxes of the selected entities, normalized to the image bounds."""
        boxes = [e.box for e in self.entities if e.id in self.selection]
        if self.width and self.height:
            boxes = [normalize(b, self.width, self.height) for b in boxes]
        return boxes

    def snapshot(self) -> dict:
        """Read-only view for the API and UI."""
        return {
            "id": self.id,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "status": self.status.value,
            "use_llm": self.use_llm,
            "width": self.width,
            "height": self.height,
            "pii_count": len(self.pii_entities),
            "signature_count": len(self.signature_entities),
            "selected_count": len(self.selection),
            "selected_ids": sorted(self.selection),
            "options": self.options.to_dict(),
            "error": self.error,
            "has_output": self.output is not None,
            "created_at": self.created_at.isoformat(),
        }
