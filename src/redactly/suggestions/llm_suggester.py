"""LLM-based redaction suggestions using OpenAI (or Azure OpenAI)."""

import json
import logging
from typing import List, Optional

import openai
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .base import BaseSuggester
from .prompt_builder import BasePromptBuilder, SuggestionPromptBuilder
from ..exceptions import SchemaError, TransportError
from ..models.wire import SuggestionRequest

logger = logging.getLogger(__name__)

# Retry on transient OpenAI errors; do not retry auth or bad-request errors.
_RETRYABLE = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.InternalServerError,
)

_retry_policy = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(_RETRYABLE),
    reraise=True,
    before_sleep=before_sleep_log(logger, logging.WARNING),
)


class LLMSuggester(BaseSuggester):
    """Recommend redactions with a chat-completions model in JSON mode."""

    def __init__(
        self,
        async_client,
        deployment_name: str,
        prompt_builder: Optional[BasePromptBuilder] = None,
        temperature: Optional[float] = None,
    ):
        self.async_client = async_client
        self.deployment_name = deployment_name
        self.prompt_builder = prompt_builder or SuggestionPromptBuilder()
        self.temperature = temperature

    async def suggest(self, request: SuggestionRequest) -> dict:
        messages = self.prompt_builder.build(request)
        try:
            response = await self._call_api(messages)
        except openai.OpenAIError as e:
            raise TransportError(f"Suggestion service call failed: {e}") from e
        return self._parse_response(response)

    @_retry_policy
    async def _call_api(self, messages: List[dict]):
        """Call OpenAI asynchronously with retry on transient errors."""
        kwargs = dict(
            model=self.deployment_name,
            messages=messages,
            response_format={"type": "json_object"},
        )
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        return await self.async_client.chat.completions.create(**kwargs)

    @staticmethod
    def _parse_response(response) -> dict:
        """Decode the model's JSON message into a dict."""
        try:
            content = response.choices[0].message.content
            data = json.loads(content or "")
        except (IndexError, AttributeError, json.JSONDecodeError) as e:
            raise SchemaError(f"Suggestion service returned malformed output: {e}") from e
        if not isinstance(data, dict):
            raise SchemaError("Suggestion service returned a non-object JSON value")
        return data
