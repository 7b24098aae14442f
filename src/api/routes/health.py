"""Health check endpoints."""

from datetime import datetime, timezone
from importlib.metadata import version as pkg_version, PackageNotFoundError

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from redactly.pipeline import RedactionPipeline

from ..config import get_settings
from ..models.schemas import HealthResponse, ReadyzResponse
from ..service import get_pipeline

router = APIRouter(tags=["Health"])


def _safe_version() -> str:
    try:
        return pkg_version("redactly")
    except PackageNotFoundError:
        return "1.0.0"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check if the service is running and healthy.",
)
async def health_check(pipeline: RedactionPipeline = Depends(get_pipeline)) -> HealthResponse:
    """Return service health status."""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=_safe_version(),
        timestamp=datetime.now(timezone.utc),
        llm_provider=settings.llm_provider,
        suggestions_available=pipeline.suggestions is not None,
    )


@router.get(
    "/healthz",
    summary="Liveness probe",
    description="Liveness probe for container orchestrators.",
)
async def liveness() -> dict:
    """Return liveness status without dependency checks."""
    return {"status": "alive"}


@router.get(
    "/readyz",
    response_model=ReadyzResponse,
    summary="Readiness probe",
    description="Readiness probe that checks critical dependencies.",
    responses={503: {"description": "Service not ready"}},
)
async def readiness():
    """Check if the service is ready to accept traffic."""
    settings = get_settings()
    checks: dict[str, str] = {}
    all_ok = True

    # Detection service URL must be an absolute http(s) URL
    try:
        url = httpx.URL(settings.detection_api_url)
        if url.scheme in ("http", "https") and url.host:
            checks["detection_service"] = "ok"
        else:
            checks["detection_service"] = f"error: invalid DETECTION_API_URL {settings.detection_api_url!r}"
            all_ok = False
    except httpx.InvalidURL as e:
        checks["detection_service"] = f"error: {e}"
        all_ok = False

    # Check LLM configuration
    if settings.llm_provider == "openai":
        if settings.openai_api_key:
            checks["llm_config"] = "ok"
        else:
            checks["llm_config"] = "error: OPENAI_API_KEY not set"
            all_ok = False
    elif settings.llm_provider == "azure":
        if settings.azure_openai_api_key and settings.azure_openai_endpoint:
            checks["llm_config"] = "ok"
        else:
            checks["llm_config"] = "error: Azure OpenAI credentials not set"
            all_ok = False
    else:
        checks["llm_config"] = f"error: unknown LLM_PROVIDER {settings.llm_provider!r}"
        all_ok = False

    response = ReadyzResponse(
        status="ready" if all_ok else "not_ready",
        checks=checks,
    )

    if not all_ok:
        return JSONResponse(status_code=503, content=response.model_dump())

    return response
