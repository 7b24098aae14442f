"""Unit tests for RedactionPipeline orchestration.

The detector and suggester are AsyncMocks; the real ImageRedactor runs on
generated images.
"""

import asyncio
import io
import threading
import zipfile
from unittest.mock import AsyncMock, MagicMock

import pytest

from redactly.detectors.base import BaseDetector
from redactly.exceptions import (
    EncodeError,
    InvalidStateError,
    NoSelectionError,
    SessionNotFoundError,
    SuggestionError,
    TransportError,
)
from redactly.models.entities import FileStatus, RedactionOptions, RedactionStyle
from redactly.pipeline import RedactionPipeline
from redactly.queue import SessionQueue
from redactly.redactors.image_redactor import ImageRedactor
from redactly.suggestions.adapter import SuggestionAdapter
from redactly.suggestions.base import BaseSuggester

from conftest import decode, make_entity, make_image, make_result, run


def _detector(result=None, side_effect=None) -> MagicMock:
    detector = MagicMock(spec=BaseDetector)
    detector.detect = AsyncMock(return_value=result, side_effect=side_effect)
    detector.aclose = AsyncMock()
    return detector


def _suggester(payload=None, side_effect=None) -> MagicMock:
    suggester = MagicMock(spec=BaseSuggester)
    suggester.suggest = AsyncMock(return_value=payload, side_effect=side_effect)
    return suggester


def _pipeline(detector, suggester=None, **kwargs) -> RedactionPipeline:
    return RedactionPipeline(
        detector=detector,
        redactor=ImageRedactor(),
        suggestions=SuggestionAdapter(suggester) if suggester is not None else None,
        **kwargs,
    )


async def _detected(pipeline, filename="scan.png", content=None, **kwargs):
    session = pipeline.submit(filename, content or make_image(800, 600), "image/png", **kwargs)
    return await pipeline.wait_for_detection(session.id)


class TestDetection:
    def test_successful_detection_selects_everything(self, name_entity, signature_entity):
        detector = _detector(make_result(name_entity, signature_entity))

        async def scenario():
            return await _detected(_pipeline(detector))

        session = run(scenario())
        assert session.status is FileStatus.COMPLETED
        assert session.selection == {name_entity.id, signature_entity.id}
        assert session.width == 800
        assert session.height == 600

    def test_use_llm_passed_to_detector(self, name_entity):
        detector = _detector(make_result(name_entity))

        async def scenario():
            return await _detected(_pipeline(detector), use_llm=False)

        session = run(scenario())
        assert session.use_llm is False
        args = detector.detect.await_args.args
        assert args[0] == "scan.png"
        assert args[3] is False

    def test_use_llm_default_applies(self, name_entity):
        detector = _detector(make_result(name_entity))

        async def scenario():
            return await _detected(_pipeline(detector, use_llm_default=False))

        assert run(scenario()).use_llm is False

    def test_transport_failure_marks_error(self):
        detector = _detector(side_effect=TransportError("Failed to process document: Bad Gateway - down"))

        async def scenario():
            return await _detected(_pipeline(detector))

        session = run(scenario())
        assert session.status is FileStatus.ERROR
        assert session.error == "Processing failed: Failed to process document: Bad Gateway - down"

    def test_unexpected_failure_marks_error(self):
        detector = _detector(side_effect=RuntimeError("kaboom"))

        async def scenario():
            return await _detected(_pipeline(detector))

        session = run(scenario())
        assert session.status is FileStatus.ERROR
        assert "kaboom" in session.error

    def test_timeout_marks_error(self, name_entity):
        async def slow(*args, **kwargs):
            await asyncio.sleep(5)
            return make_result(name_entity)

        detector = _detector(side_effect=slow)

        async def scenario():
            return await _detected(_pipeline(detector, detection_timeout=0.05))

        session = run(scenario())
        assert session.status is FileStatus.ERROR
        assert "timed out" in session.error

    def test_failure_in_one_session_does_not_affect_another(self, name_entity):
        detector = _detector()
        detector.detect.side_effect = [TransportError("down"), make_result(name_entity)]

        async def scenario():
            pipeline = _pipeline(detector)
            first = pipeline.submit("a.png", make_image(), "image/png")
            second = pipeline.submit("b.png", make_image(), "image/png")
            await pipeline.drain()
            return first, second

        first, second = run(scenario())
        assert first.status is FileStatus.ERROR
        assert second.status is FileStatus.COMPLETED

    def test_removed_session_result_discarded(self, name_entity):
        release = None

        async def gated(*args, **kwargs):
            await release.wait()
            return make_result(name_entity)

        detector = _detector(side_effect=gated)

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            pipeline = _pipeline(detector)
            session = pipeline.submit("a.png", make_image(), "image/png")
            await asyncio.sleep(0)
            pipeline.remove(session.id)
            release.set()
            await asyncio.sleep(0.01)
            return pipeline, session

        pipeline, session = run(scenario())
        assert session.removed is True
        assert session.status is not FileStatus.COMPLETED
        assert session.entities == ()
        assert pipeline.list() == []


class TestSubmitMany:
    def test_undecodable_and_excess_files_rejected(self, name_entity):
        detector = _detector(make_result(name_entity))

        async def scenario():
            pipeline = _pipeline(detector, queue=SessionQueue(capacity=2))
            files = [
                ("a.png", make_image(), "image/png"),
                ("broken.png", b"garbage", "image/png"),
                ("b.png", make_image(), "image/png"),
                ("c.png", make_image(), "image/png"),
            ]
            admitted, rejected = pipeline.submit_many(files)
            await pipeline.drain()
            return admitted, rejected

        admitted, rejected = run(scenario())
        assert [s.filename for s in admitted] == ["a.png", "b.png"]
        assert [r.filename for r in rejected] == ["broken.png", "c.png"]
        assert all(s.status is FileStatus.COMPLETED for s in admitted)

    def test_mime_type_inferred_from_content(self, name_entity):
        detector = _detector(make_result(name_entity))

        async def scenario():
            pipeline = _pipeline(detector)
            admitted, _ = pipeline.submit_many([("photo", make_image(fmt="JPEG"), None)])
            await pipeline.drain()
            return admitted[0]

        assert run(scenario()).mime_type == "image/jpeg"


class TestRedact:
    def test_end_to_end_black_box(self):
        email = make_entity(100, 100, 300, 120, subtype="EMAIL", text="a@b.com")
        detector = _detector(make_result(email))

        async def scenario():
            pipeline = _pipeline(detector)
            session = await _detected(pipeline)
            return await pipeline.redact(session.id)

        session = run(scenario())
        assert session.status is FileStatus.REDACTED
        image = decode(session.output).convert("RGB")
        assert image.getpixel((150, 110)) == (0, 0, 0)
        assert image.getpixel((50, 50)) == (255, 255, 255)

    def test_options_applied_before_redaction(self, name_entity):
        detector = _detector(make_result(name_entity))

        async def scenario():
            pipeline = _pipeline(detector)
            session = await _detected(pipeline)
            options = RedactionOptions(style=RedactionStyle.COLOR_FILL, fill_color="#FF0000")
            return await pipeline.redact(session.id, options)

        session = run(scenario())
        assert session.options.style is RedactionStyle.COLOR_FILL
        assert decode(session.output).convert("RGB").getpixel((20, 20)) == (255, 0, 0)

    def test_empty_selection_rejected(self, name_entity):
        detector = _detector(make_result(name_entity))

        async def scenario():
            pipeline = _pipeline(detector)
            session = await _detected(pipeline)
            session.deselect_all()
            with pytest.raises(NoSelectionError):
                await pipeline.redact(session.id)
            return session

        session = run(scenario())
        assert session.status is FileStatus.COMPLETED
        assert session.output is None

    def test_compositing_failure_reverts_to_completed(self, name_entity):
        detector = _detector(make_result(name_entity))
        redactor = MagicMock(spec=ImageRedactor)
        redactor.redact.side_effect = EncodeError("cannot write")

        async def scenario():
            pipeline = RedactionPipeline(detector=detector, redactor=redactor)
            session = await _detected(pipeline)
            with pytest.raises(EncodeError):
                await pipeline.redact(session.id)
            return session

        session = run(scenario())
        assert session.status is FileStatus.COMPLETED
        assert session.error == "Redaction failed: cannot write"
        assert session.selection == {name_entity.id}

    def test_rejected_redaction_keeps_options(self, name_entity):
        detector = _detector(make_result(name_entity))

        async def scenario():
            pipeline = _pipeline(detector)
            session = await _detected(pipeline)
            session.deselect_all()
            history = list(session.history)
            with pytest.raises(NoSelectionError):
                await pipeline.redact(session.id, RedactionOptions(style=RedactionStyle.PIXELATE))
            return session, history

        session, history = run(scenario())
        assert session.options.style is RedactionStyle.SOLID_FILL
        assert session.history == history

    def test_output_discarded_when_removed_mid_redaction(self, name_entity):
        detector = _detector(make_result(name_entity))
        release = threading.Event()
        redactor = MagicMock(spec=ImageRedactor)

        def blocking(*args, **kwargs):
            release.wait(5)
            return b"redacted"

        redactor.redact.side_effect = blocking

        async def scenario():
            pipeline = RedactionPipeline(detector=detector, redactor=redactor)
            session = await _detected(pipeline)
            task = asyncio.ensure_future(pipeline.redact(session.id))
            while not redactor.redact.called:
                await asyncio.sleep(0.01)
            pipeline.remove(session.id)
            release.set()
            await task
            return pipeline, session

        pipeline, session = run(scenario())
        assert session.output is None
        assert session.history[-1] is FileStatus.REDACTING
        assert pipeline.redacted_outputs() == []

    def test_failure_after_removal_does_not_transition(self, name_entity):
        detector = _detector(make_result(name_entity))
        release = threading.Event()
        redactor = MagicMock(spec=ImageRedactor)

        def blocking(*args, **kwargs):
            release.wait(5)
            raise EncodeError("cannot write")

        redactor.redact.side_effect = blocking

        async def scenario():
            pipeline = RedactionPipeline(detector=detector, redactor=redactor)
            session = await _detected(pipeline)
            task = asyncio.ensure_future(pipeline.redact(session.id))
            while not redactor.redact.called:
                await asyncio.sleep(0.01)
            pipeline.remove(session.id)
            release.set()
            with pytest.raises(EncodeError):
                await task
            return session

        session = run(scenario())
        assert session.history[-1] is FileStatus.REDACTING
        assert session.error is None

    def test_redacted_outputs_for_download_all(self, name_entity):
        detector = _detector(make_result(name_entity))

        async def scenario():
            pipeline = _pipeline(detector)
            first = await _detected(pipeline, filename="one.png")
            await _detected(pipeline, filename="two.png")
            await pipeline.redact(first.id)
            return pipeline.redacted_outputs()

        outputs = run(scenario())
        assert [name for name, _ in outputs] == ["redacted-one.png"]

    def test_redacted_archive(self, name_entity):
        detector = _detector(make_result(name_entity))

        async def scenario():
            pipeline = _pipeline(detector)
            with pytest.raises(InvalidStateError, match="No redacted files"):
                pipeline.redacted_archive()
            first = await _detected(pipeline, filename="one.png")
            await _detected(pipeline, filename="two.png")
            await pipeline.redact(first.id)
            return pipeline.redacted_archive(), first.output

        archive, output = run(scenario())
        with zipfile.ZipFile(io.BytesIO(archive)) as bundle:
            assert bundle.namelist() == ["redacted-one.png"]
            assert bundle.read("redacted-one.png") == output

    def test_unknown_session(self):
        async def scenario():
            with pytest.raises(SessionNotFoundError):
                await _pipeline(_detector()).redact("missing")

        run(scenario())


class TestSuggest:
    def test_selection_replaced_by_matched_ids(self, name_entity, signature_entity):
        detector = _detector(make_result(name_entity, signature_entity))
        suggester = _suggester(
            {"suggestedRedactions": [{"boundingBox": signature_entity.box.to_list()}], "reasoning": "sig only"}
        )

        async def scenario():
            pipeline = _pipeline(detector, suggester)
            session = await _detected(pipeline)
            suggestion = await pipeline.suggest(session.id, "Only signatures")
            return session, suggestion

        session, suggestion = run(scenario())
        assert session.selection == {signature_entity.id}
        assert suggestion.rationale == "sig only"

    def test_failure_keeps_existing_selection(self, name_entity):
        detector = _detector(make_result(name_entity))
        suggester = _suggester(side_effect=TransportError("unreachable"))

        async def scenario():
            pipeline = _pipeline(detector, suggester)
            session = await _detected(pipeline)
            with pytest.raises(SuggestionError):
                await pipeline.suggest(session.id, "anything")
            return session

        session = run(scenario())
        assert session.selection == {name_entity.id}

    def test_removed_during_suggestion_changes_nothing(self, name_entity, signature_entity):
        detector = _detector(make_result(name_entity, signature_entity))
        release = None

        async def gated(request):
            await release.wait()
            return {"suggestedRedactions": [{"boundingBox": signature_entity.box.to_list()}], "reasoning": ""}

        suggester = _suggester(side_effect=gated)

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            pipeline = _pipeline(detector, suggester)
            session = await _detected(pipeline)
            task = asyncio.ensure_future(pipeline.suggest(session.id, "Only signatures"))
            while not suggester.suggest.called:
                await asyncio.sleep(0)
            pipeline.remove(session.id)
            release.set()
            with pytest.raises(SessionNotFoundError):
                await task
            return session

        session = run(scenario())
        assert session.selection == {name_entity.id, signature_entity.id}
        assert session.history[-1] is FileStatus.COMPLETED

    def test_not_configured(self, name_entity):
        async def scenario():
            pipeline = _pipeline(_detector(make_result(name_entity)))
            session = await _detected(pipeline)
            with pytest.raises(SuggestionError, match="not configured"):
                await pipeline.suggest(session.id, "anything")

        run(scenario())

    def test_rejected_after_failed_detection(self):
        suggester = _suggester({"suggestedRedactions": [], "reasoning": ""})

        async def scenario():
            pipeline = _pipeline(_detector(side_effect=TransportError("down")), suggester)
            session = await _detected(pipeline)
            with pytest.raises(InvalidStateError):
                await pipeline.suggest(session.id, "anything")

        run(scenario())
        suggester.suggest.assert_not_awaited()


class TestSummary:
    def test_counts_by_status_and_type(self, name_entity, signature_entity):
        detector = _detector()
        detector.detect.side_effect = [make_result(name_entity, signature_entity), TransportError("down")]

        async def scenario():
            pipeline = _pipeline(detector)
            await _detected(pipeline, filename="a.png")
            await _detected(pipeline, filename="b.png")
            summary = pipeline.summary()
            await pipeline.aclose()
            return summary

        summary = run(scenario())
        assert summary["total_sessions"] == 2
        assert summary["by_status"] == {"completed": 1, "error": 1}
        assert summary["by_entity_type"] == {"NAME": 1, "SIGNATURE": 1}
        assert summary["total_selected"] == 2
        detector.aclose.assert_awaited_once()
