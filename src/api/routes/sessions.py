"""Session queue, selection, suggestion and redaction endpoints."""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile, status
from starlette.requests import Request
from starlette.responses import Response

from redactly.exceptions import InvalidStateError
from redactly.models.entities import FileStatus
from redactly.pipeline import RedactionPipeline
from redactly.suggestions.prompt_builder import DEFAULT_CRITERIA

from ..config import get_settings
from ..rate_limit import limiter
from ..models.schemas import (
    BulkSelectionInput,
    DashboardResponse,
    ErrorResponse,
    OptionsInput,
    RejectedFileResponse,
    SelectionResponse,
    SessionDetail,
    SessionSummary,
    SuggestionInput,
    SuggestionResponse,
    ToggleInput,
    UploadResponse,
)
from ..service import get_pipeline
from ..uploads import UploadValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Redaction"])

ZIP_FILENAME = "redacted.zip"


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def _selection(session) -> SelectionResponse:
    return SelectionResponse(session_id=session.id, selected_ids=sorted(session.selection))


@router.post(
    "/sessions",
    response_model=UploadResponse,
    responses={429: {"model": ErrorResponse}},
    summary="Upload images and start detection",
)
@limiter.limit(get_settings().rate_limit)
async def upload_images(
    request: Request,
    files: List[UploadFile] = File(...),
    use_llm: Optional[bool] = Query(None, description="Ask the detector to use its LLM pass"),
    wait: bool = Query(False, description="Return only after detection has finished"),
    pipeline: RedactionPipeline = Depends(get_pipeline),
) -> UploadResponse:
    validator = UploadValidator()
    accepted = []
    rejected: list[RejectedFileResponse] = []

    for upload in files:
        filename = upload.filename or "image"
        try:
            content = await upload.read()
            valid = validator.validate(filename, content)
        except ValueError as e:
            rejected.append(RejectedFileResponse(filename=filename, reason=str(e)))
            continue
        accepted.append((valid.filename, valid.content, valid.mime_type))

    sessions, refused = pipeline.submit_many(accepted, use_llm=use_llm)
    rejected.extend(RejectedFileResponse(filename=r.filename, reason=r.reason) for r in refused)
    logger.info("Admitted %d files, rejected %d", len(sessions), len(rejected))

    if wait and sessions:
        await asyncio.gather(*(pipeline.wait_for_detection(s.id) for s in sessions))

    return UploadResponse(
        sessions=[SessionSummary.from_session(s) for s in sessions],
        rejected=rejected,
    )


@router.get("/sessions", response_model=List[SessionSummary], summary="List queued sessions")
async def list_sessions(pipeline: RedactionPipeline = Depends(get_pipeline)) -> List[SessionSummary]:
    return [SessionSummary.from_session(s) for s in pipeline.list()]


@router.get(
    "/sessions/{session_id}",
    response_model=SessionDetail,
    responses={404: {"model": ErrorResponse}},
    summary="Session detail with detected entities",
)
async def get_session(
    session_id: str, pipeline: RedactionPipeline = Depends(get_pipeline)
) -> SessionDetail:
    return SessionDetail.from_session(pipeline.get(session_id))


@router.delete(
    "/sessions/{session_id}",
    response_model=SessionSummary,
    responses={404: {"model": ErrorResponse}},
    summary="Remove a session and cancel its in-flight work",
)
async def remove_session(
    session_id: str, pipeline: RedactionPipeline = Depends(get_pipeline)
) -> SessionSummary:
    return SessionSummary.from_session(pipeline.remove(session_id))


@router.get(
    "/sessions/{session_id}/image",
    responses={404: {"model": ErrorResponse}},
    summary="Original uploaded image",
)
async def get_original_image(session_id: str, pipeline: RedactionPipeline = Depends(get_pipeline)):
    session = pipeline.get(session_id)
    return Response(content=session.content, media_type=session.mime_type or "application/octet-stream")


@router.post(
    "/sessions/{session_id}/selection/toggle",
    response_model=SelectionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Toggle one entity in or out of the selection",
)
async def toggle_entity(
    session_id: str,
    body: ToggleInput,
    pipeline: RedactionPipeline = Depends(get_pipeline),
) -> SelectionResponse:
    session = pipeline.get(session_id)
    session.toggle(body.entity_id)
    return _selection(session)


@router.post(
    "/sessions/{session_id}/selection/select-all",
    response_model=SelectionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Select every entity, optionally of one kind",
)
async def select_all(
    session_id: str,
    body: Optional[BulkSelectionInput] = Body(None),
    pipeline: RedactionPipeline = Depends(get_pipeline),
) -> SelectionResponse:
    session = pipeline.get(session_id)
    session.select_all(body.kind if body else None)
    return _selection(session)


@router.post(
    "/sessions/{session_id}/selection/deselect-all",
    response_model=SelectionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Deselect every entity, optionally of one kind",
)
async def deselect_all(
    session_id: str,
    body: Optional[BulkSelectionInput] = Body(None),
    pipeline: RedactionPipeline = Depends(get_pipeline),
) -> SelectionResponse:
    session = pipeline.get(session_id)
    session.deselect_all(body.kind if body else None)
    return _selection(session)


@router.put(
    "/sessions/{session_id}/options",
    response_model=OptionsInput,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Set the redaction style",
)
async def set_options(
    session_id: str,
    body: OptionsInput,
    pipeline: RedactionPipeline = Depends(get_pipeline),
) -> OptionsInput:
    session = pipeline.get(session_id)
    try:
        options = body.to_options()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    session.set_options(options)
    return OptionsInput.model_validate(session.options.to_dict())


@router.post(
    "/sessions/{session_id}/suggestions",
    response_model=SuggestionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Replace the selection with AI-recommended entities",
)
async def suggest_redactions(
    session_id: str,
    body: Optional[SuggestionInput] = Body(None),
    pipeline: RedactionPipeline = Depends(get_pipeline),
) -> SuggestionResponse:
    criteria = body.criteria if body is not None else DEFAULT_CRITERIA
    suggestion = await pipeline.suggest(session_id, criteria)
    return SuggestionResponse(
        session_id=session_id,
        recommended_ids=sorted(suggestion.recommended_ids),
        reasoning=suggestion.rationale,
        unmatched_boxes=suggestion.dropped,
    )


@router.post(
    "/sessions/{session_id}/redact",
    response_model=SessionSummary,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Composite the selected regions onto a copy of the image",
)
async def redact_session(
    session_id: str,
    body: Optional[OptionsInput] = Body(None),
    pipeline: RedactionPipeline = Depends(get_pipeline),
) -> SessionSummary:
    options = None
    if body is not None:
        try:
            options = body.to_options()
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    session = await pipeline.redact(session_id, options)
    return SessionSummary.from_session(session)


@router.get(
    "/sessions/{session_id}/download",
    summary="Download the redacted image",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def download_redacted(session_id: str, pipeline: RedactionPipeline = Depends(get_pipeline)):
    session = pipeline.get(session_id)
    if session.status is not FileStatus.REDACTED or session.output is None:
        raise InvalidStateError(f"Session {session_id} has not been redacted")
    return Response(
        content=session.output,
        media_type=session.mime_type or "application/octet-stream",
        headers=_attachment(session.output_filename),
    )


@router.get(
    "/downloads/redacted.zip",
    summary="Download every redacted image as one zip archive",
    responses={404: {"model": ErrorResponse}},
)
async def download_all(pipeline: RedactionPipeline = Depends(get_pipeline)):
    if not pipeline.redacted_outputs():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No redacted files to download.")
    return Response(
        content=pipeline.redacted_archive(),
        media_type="application/zip",
        headers=_attachment(ZIP_FILENAME),
    )


@router.get("/dashboard", response_model=DashboardResponse, summary="Queue dashboard")
async def queue_dashboard(pipeline: RedactionPipeline = Depends(get_pipeline)) -> DashboardResponse:
    recent = pipeline.list()[-10:][::-1]
    return DashboardResponse(
        **pipeline.summary(),
        recent_sessions=[SessionSummary.from_session(s) for s in recent],
    )
