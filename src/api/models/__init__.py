"""Pydantic models for API request/response schemas."""

from .schemas import (
    BoundingBoxResponse,
    EntityResponse,
    OptionsInput,
    SessionSummary,
    SessionDetail,
    RejectedFileResponse,
    UploadResponse,
    ToggleInput,
    BulkSelectionInput,
    SelectionResponse,
    SuggestionInput,
    SuggestionResponse,
    DashboardResponse,
    ErrorResponse,
    HealthResponse,
    ReadyzResponse,
)

__all__ = [
    "BoundingBoxResponse",
    "EntityResponse",
    "OptionsInput",
    "SessionSummary",
    "SessionDetail",
    "RejectedFileResponse",
    "UploadResponse",
    "ToggleInput",
    "BulkSelectionInput",
    "SelectionResponse",
    "SuggestionInput",
    "SuggestionResponse",
    "DashboardResponse",
    "ErrorResponse",
    "HealthResponse",
    "ReadyzResponse",
]
