"""AI redaction suggestions."""

from .adapter import Suggestion, SuggestionAdapter, build_request
from .base import BaseSuggester
from .llm_suggester import LLMSuggester
from .prompt_builder import DEFAULT_CRITERIA, BasePromptBuilder, SuggestionPromptBuilder

__all__ = [
    "Suggestion",
    "SuggestionAdapter",
    "build_request",
    "BaseSuggester",
    "LLMSuggester",
    "DEFAULT_CRITERIA",
    "BasePromptBuilder",
    "SuggestionPromptBuilder",
]
