"""Unit tests for SessionQueue admission, lookup and removal."""

import asyncio

import pytest

from redactly.exceptions import CapacityError, DuplicateFileError, SessionNotFoundError
from redactly.queue import DEFAULT_CAPACITY, SessionQueue
from redactly.session import FileSession

from conftest import run


def _session(name: str) -> FileSession:
    return FileSession(filename=name, content=b"data", width=10, height=10)


class TestAdmission:
    def test_default_capacity_is_thirty(self):
        assert DEFAULT_CAPACITY == 30
        assert SessionQueue().capacity == 30

    def test_thirty_first_file_rejected(self):
        queue = SessionQueue()
        for i in range(30):
            queue.add(_session(f"file-{i}.png"))
        assert queue.is_full

        with pytest.raises(CapacityError, match="at most 30 files"):
            queue.add(_session("file-30.png"))
        assert len(queue) == 30

    def test_duplicate_filename_rejected(self):
        queue = SessionQueue()
        queue.add(_session("a.png"))
        with pytest.raises(DuplicateFileError):
            queue.add(_session("a.png"))
        assert len(queue) == 1

    def test_add_many_admits_until_full(self):
        queue = SessionQueue(capacity=2)
        admitted, rejected = queue.add_many([_session("a.png"), _session("a.png"), _session("b.png"), _session("c.png")])

        assert [s.filename for s in admitted] == ["a.png", "b.png"]
        assert [r.filename for r in rejected] == ["a.png", "c.png"]
        assert isinstance(rejected[0].error, DuplicateFileError)
        assert "File limit exceeded" in rejected[1].reason

    def test_iteration_keeps_insertion_order(self):
        queue = SessionQueue()
        for name in ["c.png", "a.png", "b.png"]:
            queue.add(_session(name))
        assert [s.filename for s in queue] == ["c.png", "a.png", "b.png"]


class TestLookupAndRemoval:
    def test_get_unknown_id(self):
        with pytest.raises(SessionNotFoundError):
            SessionQueue().get("missing")

    def test_remove_frees_capacity_and_marks_removed(self):
        queue = SessionQueue(capacity=1)
        session = queue.add(_session("a.png"))
        removed = queue.remove(session.id)

        assert removed.removed is True
        assert session.id not in queue
        queue.add(_session("a.png"))

    def test_remove_cancels_in_flight_task(self):
        async def scenario():
            queue = SessionQueue()
            session = queue.add(_session("a.png"))
            task = asyncio.get_running_loop().create_task(asyncio.sleep(10))
            queue.attach_task(session.id, task)

            queue.remove(session.id)
            with pytest.raises(asyncio.CancelledError):
                await task
            return queue

        queue = run(scenario())
        assert len(queue) == 0

    def test_finished_task_is_forgotten(self):
        async def scenario():
            queue = SessionQueue()
            session = queue.add(_session("a.png"))
            task = asyncio.get_running_loop().create_task(asyncio.sleep(0))
            queue.attach_task(session.id, task)
            await task
            await asyncio.sleep(0)
            return queue.task_for(session.id)

        assert run(scenario()) is None
