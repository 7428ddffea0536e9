"""LLM-powered profiling, scoring, summarization and translation."""

from .llm import LLMError, OllamaClient, negotiate_capabilities
from .profile import ProfileBuilder, ProfileCache
from .ranking import ScoredCollection, is_low_priority, sort_by_score
from .scoring import ScoringEngine
from .summarizer import DetailSummarizer, SummaryAccumulator
from .translator import (
    OllamaTranslatorFactory,
    TranslatableSummary,
    TranslatorAdapter,
)

__all__ = [
    "DetailSummarizer",
    "LLMError",
    "OllamaClient",
    "OllamaTranslatorFactory",
    "ProfileBuilder",
    "ProfileCache",
    "ScoredCollection",
    "ScoringEngine",
    "SummaryAccumulator",
    "TranslatableSummary",
    "TranslatorAdapter",
    "is_low_priority",
    "negotiate_capabilities",
    "sort_by_score",
]
