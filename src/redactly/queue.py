"""Bounded, ordered collection of file sessions."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .exceptions import CapacityError, DuplicateFileError, RedactlyError, SessionNotFoundError
from .session import FileSession

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 30


@dataclass
class RejectedFile:
    """A file that was not admitted to the queue, with the reason."""

    filename: str
    error: RedactlyError

    @property
    def reason(self) -> str:
        return str(self.error)


class SessionQueue:
    """Holds at most ``capacity`` sessions; excess files are rejected, not queued."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.capacity = capacity
        self._sessions: Dict[str, FileSession] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[FileSession]:
        return iter(list(self._sessions.values()))

    @property
    def is_full(self) -> bool:
        return len(self._sessions) >= self.capacity

    def add(self, session: FileSession) -> FileSession:
        if self.is_full:
            raise CapacityError(
                f"File limit exceeded: at most {self.capacity} files can be queued."
            )
        if any(s.filename == session.filename for s in self._sessions.values()):
            raise DuplicateFileError(f"A file named {session.filename!r} is already queued.")
        self._sessions[session.id] = session
        logger.info("Queued session %s (%s), %d/%d", session.id, session.filename, len(self), self.capacity)
        return session

    def add_many(
        self, sessions: Sequence[FileSession]
    ) -> Tuple[List[FileSession], List[RejectedFile]]:
        """Admit sessions in order until the queue is full; reject the rest."""
        admitted: List[FileSession] = []
        rejected: List[RejectedFile] = []
        for session in sessions:
            try:
                admitted.append(self.add(session))
            except (CapacityError, DuplicateFileError) as e:
                rejected.append(RejectedFile(filename=session.filename, error=e))
        if rejected:
            logger.warning("Rejected %d of %d files", len(rejected), len(sessions))
        return admitted, rejected

    def get(self, session_id: str) -> FileSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(f"Session not found: {session_id}") from None

    def list(self) -> List[FileSession]:
        return list(self._sessions.values())

    def attach_task(self, session_id: str, task: asyncio.Task) -> None:
        """Track the in-flight task of a session so removal can cancel it."""
        self._tasks[session_id] = task

        def _forget(done: asyncio.Task) -> None:
            if self._tasks.get(session_id) is done:
                del self._tasks[session_id]

        task.add_done_callback(_forget)

    def task_for(self, session_id: str) -> Optional[asyncio.Task]:
        return self._tasks.get(session_id)

    def remove(self, session_id: str) -> FileSession:
        """Delete a session; an in-flight task is cancelled and its result discarded."""
        session = self.get(session_id)
        session.removed = True
        task = self._tasks.pop(session_id, None)
        if task is not None and not task.done():
            task.cancel()
        del self._sessions[session_id]
        logger.info("Removed session %s (%s)", session_id, session.filename)
        return session

    def cancel_all(self) -> None:
        for task in list(self._tasks.values()):
            if not task.done():
                task.cancel()
        self._tasks.clear()
