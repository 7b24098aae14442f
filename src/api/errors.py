"""Translate core exceptions into JSON error responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from redactly.exceptions import (
    CapacityError,
    DecodeError,
    DuplicateFileError,
    EncodeError,
    EntityNotFoundError,
    InvalidStateError,
    MissingOriginalError,
    NoSelectionError,
    RedactlyError,
    SessionNotFoundError,
    SuggestionError,
    TransportError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
STATUS_BY_ERROR: list[tuple[type[RedactlyError], int, str]] = [
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND, "session_not_found"),
    (EntityNotFoundError, status.HTTP_404_NOT_FOUND, "entity_not_found"),
    (CapacityError, status.HTTP_409_CONFLICT, "capacity_exceeded"),
    (DuplicateFileError, status.HTTP_409_CONFLICT, "duplicate_file"),
    (InvalidStateError, status.HTTP_409_CONFLICT, "invalid_state"),
    (MissingOriginalError, status.HTTP_409_CONFLICT, "missing_original"),
    (NoSelectionError, status.HTTP_422_UNPROCESSABLE_ENTITY, "no_selection"),
    (DecodeError, status.HTTP_422_UNPROCESSABLE_ENTITY, "decode_error"),
    (SuggestionError, status.HTTP_502_BAD_GATEWAY, "suggestion_failed"),
    (TransportError, status.HTTP_502_BAD_GATEWAY, "upstream_error"),
    (EncodeError, status.HTTP_500_INTERNAL_SERVER_ERROR, "encode_error"),
]


def status_for(exc: RedactlyError) -> tuple[int, str]:
    """HTTP status code and error slug for a core exception."""
    for error_type, code, slug in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code, slug
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "redaction_error"


async def redactly_error_handler(request: Request, exc: RedactlyError) -> JSONResponse:
    code, slug = status_for(exc)
    if code >= 500:
        logger.error("%s on %s %s: %s", slug, request.method, request.url.path, exc)
    else:
        logger.info("%s on %s %s: %s", slug, request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"error": slug, "message": str(exc)})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred.",
            "detail": str(exc) if logging.getLogger().isEnabledFor(logging.DEBUG) else None,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RedactlyError, redactly_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
