"""Process-wide RedactionPipeline shared by the HTTP routes and the UI."""

import logging
from typing import Optional

from redactly.factory import build_pipeline
from redactly.pipeline import RedactionPipeline

from .config import get_settings

logger = logging.getLogger(__name__)

# Global pipeline instance
_pipeline: Optional[RedactionPipeline] = None


def get_pipeline() -> RedactionPipeline:
    """Get the global pipeline, building it from settings on first use."""
    global _pipeline
    if _pipeline is None:
        settings = get_settings()
        _pipeline = build_pipeline(
            detection_api_url=settings.detection_api_url,
            detection_timeout=settings.detection_timeout_seconds,
            use_llm_default=settings.use_llm_default,
            provider=settings.llm_provider,
            openai_api_key=settings.openai_api_key,
            openai_model=settings.openai_model,
            openai_temperature=settings.openai_temperature,
            azure_endpoint=settings.azure_openai_endpoint,
            api_key=settings.azure_openai_api_key,
            deployment_name=settings.azure_openai_deployment_name,
            api_version=settings.azure_openai_api_version,
            max_sessions=settings.max_sessions,
        )
        logger.info(
            "Pipeline ready: detection=%s capacity=%d suggestions=%s",
            settings.detection_api_url,
            settings.max_sessions,
            "on" if _pipeline.suggestions is not None else "off",
        )
    return _pipeline


async def close_pipeline() -> None:
    """Cancel in-flight work and release the pipeline's clients."""
    global _pipeline
    if _pipeline is not None:
        await _pipeline.aclose()
        _pipeline = None
