"""Factory for constructing a fully wired RedactionPipeline."""

import logging
from typing import Optional

from openai import AsyncAzureOpenAI, AsyncOpenAI, OpenAIError

from .pipeline import RedactionPipeline
from .detectors.remote_detector import RemoteDetector
from .queue import DEFAULT_CAPACITY, SessionQueue
from .redactors.image_redactor import ImageRedactor
from .suggestions.adapter import SuggestionAdapter
from .suggestions.llm_suggester import LLMSuggester

logger = logging.getLogger(__name__)


def build_suggestions(
    provider: str = "openai",
    openai_api_key: str = "",
    openai_model: str = "gpt-4o",
    openai_temperature: float = -1.0,
    azure_endpoint: str = "",
    api_key: str = "",
    deployment_name: str = "",
    api_version: str = "2024-02-15-preview",
) -> Optional[SuggestionAdapter]:
    """Build the AI suggestion adapter, or None when the provider has no credentials."""
    try:
        if provider == "azure":
            async_client = AsyncAzureOpenAI(
                azure_endpoint=azure_endpoint or None,
                api_key=api_key or None,
                api_version=api_version,
            )
            model_name = deployment_name
        else:
            # Default to OpenAI
            async_client = AsyncOpenAI(api_key=openai_api_key or None)
            model_name = openai_model
    except (OpenAIError, ValueError) as e:
        logger.warning("AI suggestions disabled (%s provider not configured): %s", provider, e)
        return None

    # Resolve temperature: -1 means "omit" (use model default)
    temperature = openai_temperature if openai_temperature >= 0 else None

    return SuggestionAdapter(
        LLMSuggester(
            async_client=async_client,
            deployment_name=model_name,
            temperature=temperature,
        )
    )


def build_pipeline(
    # Detection service
    detection_api_url: str = "http://localhost:8080",
    detection_timeout: float = 120.0,
    use_llm_default: bool = True,
    # Provider selection for AI suggestions
    provider: str = "openai",
    # OpenAI settings
    openai_api_key: str = "",
    openai_model: str = "gpt-4o",
    openai_temperature: float = -1.0,
    # Azure OpenAI settings
    azure_endpoint: str = "",
    api_key: str = "",
    deployment_name: str = "",
    api_version: str = "2024-02-15-preview",
    # Queue
    max_sessions: int = DEFAULT_CAPACITY,
) -> RedactionPipeline:
    """Build a RedactionPipeline wired to the detection service and LLM provider."""
    suggestions = build_suggestions(
        provider=provider,
        openai_api_key=openai_api_key,
        openai_model=openai_model,
        openai_temperature=openai_temperature,
        azure_endpoint=azure_endpoint,
        api_key=api_key,
        deployment_name=deployment_name,
        api_version=api_version,
    )
    return RedactionPipeline(
        detector=RemoteDetector(base_url=detection_api_url, timeout=detection_timeout),
        redactor=ImageRedactor(),
        suggestions=suggestions,
        queue=SessionQueue(capacity=max_sessions),
        detection_timeout=detection_timeout,
        use_llm_default=use_llm_default,
    )
