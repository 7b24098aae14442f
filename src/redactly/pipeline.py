"""Orchestrates upload -> detect -> select -> redact for queued images."""

import asyncio
import functools
import io
import logging
import zipfile
from collections import Counter
from typing import List, Optional, Sequence, Tuple

from .detectors.base import BaseDetector
from .exceptions import (
    DecodeError,
    InvalidStateError,
    RedactlyError,
    SessionNotFoundError,
    SuggestionError,
)
from .models.entities import FileStatus, RedactionOptions
from .queue import RejectedFile, SessionQueue
from .redactors.base import BaseRedactor
from .redactors.image_redactor import FORMAT_TO_MIME, read_dimensions
from .session import FileSession
from .suggestions.adapter import Suggestion, SuggestionAdapter

logger = logging.getLogger(__name__)


class RedactionPipeline:
    """Runs each session's work as independent asyncio tasks.

    Detection for different files proceeds concurrently; within one session
    the status guards keep operations strictly sequential. Every long-running
    call ends in exactly one state transition, and results arriving after a
    session was removed are discarded.
    """

    def __init__(
        self,
        detector: BaseDetector,
        redactor: BaseRedactor,
        suggestions: Optional[SuggestionAdapter] = None,
        queue: Optional[SessionQueue] = None,
        detection_timeout: Optional[float] = 120.0,
        use_llm_default: bool = True,
    ):
        self.detector = detector
        self.redactor = redactor
        self.suggestions = suggestions
        self.queue = queue if queue is not None else SessionQueue()
        self.detection_timeout = detection_timeout
        self.use_llm_default = use_llm_default

    # ------------------------------------------------------------------
    # Admission and detection
    # ------------------------------------------------------------------

    def _new_session(
        self,
        filename: str,
        content: bytes,
        mime_type: Optional[str],
        use_llm: Optional[bool],
    ) -> FileSession:
        width, height, fmt = read_dimensions(content)
        return FileSession(
            filename=filename,
            content=content,
            mime_type=mime_type or FORMAT_TO_MIME.get(fmt or ""),
            width=width,
            height=height,
            use_llm=self.use_llm_default if use_llm is None else use_llm,
        )

    def submit(
        self,
        filename: str,
        content: bytes,
        mime_type: Optional[str] = None,
        use_llm: Optional[bool] = None,
    ) -> FileSession:
        """Queue one image and start detecting it. Must run inside an event loop."""
        session = self.queue.add(self._new_session(filename, content, mime_type, use_llm))
        self._schedule(session)
        return session

    def submit_many(
        self,
        files: Sequence[Tuple[str, bytes, Optional[str]]],
        use_llm: Optional[bool] = None,
    ) -> Tuple[List[FileSession], List[RejectedFile]]:
        """Queue several ``(filename, content, mime_type)`` files up to capacity."""
        sessions: List[FileSession] = []
        rejected: List[RejectedFile] = []
        for filename, content, mime_type in files:
            try:
                sessions.append(self._new_session(filename, content, mime_type, use_llm))
            except DecodeError as e:
                rejected.append(RejectedFile(filename=filename, error=e))

        admitted, refused = self.queue.add_many(sessions)
        for session in admitted:
            self._schedule(session)
        return admitted, rejected + refused

    def _schedule(self, session: FileSession) -> None:
        task = asyncio.get_running_loop().create_task(
            self._process(session), name=f"detect-{session.id}"
        )
        self.queue.attach_task(session.id, task)

    async def _process(self, session: FileSession) -> None:
        session.begin_upload()
        session.mark_uploaded()
        try:
            result = await asyncio.wait_for(
                self.detector.detect(
                    session.filename,
                    session.content,
                    session.mime_type,
                    session.use_llm,
                ),
                timeout=self.detection_timeout,
            )
        except asyncio.TimeoutError:
            self._fail_detection(
                session,
                f"Processing failed: detection timed out after {self.detection_timeout:g}s",
            )
            return
        except RedactlyError as e:
            self._fail_detection(session, f"Processing failed: {e}")
            return
        except Exception as e:
            logger.exception("Unexpected detection failure for session %s", session.id)
            self._fail_detection(session, f"Processing failed: {e}")
            return

        if session.removed:
            logger.info("Discarding detection result for removed session %s", session.id)
            return
        session.complete_detection(result)
        logger.info(
            "Session %s completed: %d entities selected", session.id, len(session.selection)
        )

    @staticmethod
    def _fail_detection(session: FileSession, message: str) -> None:
        if session.removed:
            return
        logger.warning("Session %s failed: %s", session.id, message)
        session.fail_detection(message)

    async def wait_for_detection(self, session_id: str) -> FileSession:
        """Wait until the session's detection task has finished."""
        session = self.queue.get(session_id)
        task = self.queue.task_for(session_id)
        if task is not None:
            await asyncio.wait({task})
        return session

    async def drain(self) -> None:
        """Wait for every in-flight detection task."""
        tasks = [t for t in (self.queue.task_for(s.id) for s in self.queue) if t is not None]
        if tasks:
            await asyncio.wait(tasks)

    # ------------------------------------------------------------------
    # Session access
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> FileSession:
        return self.queue.get(session_id)

    def list(self) -> List[FileSession]:
        return self.queue.list()

    def remove(self, session_id: str) -> FileSession:
        return self.queue.remove(session_id)

    # ------------------------------------------------------------------
    # Suggestions and redaction
    # ------------------------------------------------------------------

    async def suggest(self, session_id: str, criteria: str) -> Suggestion:
        """Replace the selection with the suggestion service's recommendation.

        On failure the existing selection is left untouched.
        """
        if self.suggestions is None:
            raise SuggestionError("AI suggestions are not configured.")
        session = self.queue.get(session_id)
        if session.status is not FileStatus.COMPLETED:
            raise InvalidStateError(f"Cannot request suggestions while session is {session.status.value}")

        suggestion = await self.suggestions.suggest(
            session.ocr_text,
            session.entities,
            criteria,
            session.width,
            session.height,
        )
        if session.removed:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        session.replace_selection(suggestion.recommended_ids)
        return suggestion

    async def redact(
        self, session_id: str, options: Optional[RedactionOptions] = None
    ) -> FileSession:
        """Composite the selected regions from the original image.

        A compositing failure returns the session to COMPLETED with the
        error attached, then re-raises.
        """
        session = self.queue.get(session_id)
        session.begin_redaction(options)
        boxes = session.selected_boxes()

        logger.info(
            "Redacting %d regions of session %s with %s",
            len(boxes),
            session.id,
            session.options.style.value,
        )
        loop = asyncio.get_running_loop()
        try:
            output = await loop.run_in_executor(
                None,
                functools.partial(
                    self.redactor.redact,
                    session.content,
                    session.mime_type,
                    boxes,
                    session.options,
                ),
            )
        except Exception as e:
            logger.warning("Redaction of session %s failed: %s", session.id, e)
            if not session.removed:
                session.fail_redaction(str(e))
            raise

        if session.removed:
            logger.info("Discarding redaction output for removed session %s", session.id)
            return session
        session.complete_redaction(output)
        return session

    def redacted_outputs(self) -> List[Tuple[str, bytes]]:
        """``(download name, bytes)`` for every redacted session, in queue order."""
        return [
            (s.output_filename, s.output)
            for s in self.queue
            if s.status is FileStatus.REDACTED and s.output is not None
        ]

    def redacted_archive(self) -> bytes:
        """Zip of every redacted output; raises InvalidStateError when there is none."""
        outputs = self.redacted_outputs()
        if not outputs:
            raise InvalidStateError("No redacted files to download.")
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for name, data in outputs:
                archive.writestr(name, data)
        return buffer.getvalue()

    def summary(self) -> dict:
        """Queue-wide counts by status and detected entity type."""
        sessions = self.queue.list()
        by_status = Counter(s.status.value for s in sessions)
        by_type = Counter(e.subtype for s in sessions for e in s.entities)
        return {
            "total_sessions": len(sessions),
            "capacity": self.queue.capacity,
            "by_status": dict(by_status),
            "by_entity_type": dict(by_type.most_common()),
            "total_entities": sum(by_type.values()),
            "total_selected": sum(len(s.selection) for s in sessions),
            "total_redacted": by_status.get(FileStatus.REDACTED.value, 0),
        }

    async def aclose(self) -> None:
        self.queue.cancel_all()
        await self.detector.aclose()
