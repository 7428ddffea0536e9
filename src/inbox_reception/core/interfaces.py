"""Protocol interfaces and shared errors for decoupling components."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from typing import Any, Protocol

from .models import Credential, MessageDetail, OutputConstraint, ScoredMessage

StatusCallback = Callable[[str], None]


class AuthError(RuntimeError):
    """Raised when a bearer credential is unavailable or has been revoked."""


class ProfileGenerationError(RuntimeError):
    """Raised when the model output cannot be turned into a user profile."""


class SearchFetchError(RuntimeError):
    """Raised when listing or fetching messages fails in strict mode."""


class BatchScoringError(RuntimeError):
    """Raised when one scoring batch cannot be analysed."""


class SummarizationError(RuntimeError):
    """Raised when a detailed summary cannot be produced."""


class SummarizerUnavailableError(SummarizationError):
    """Raised when no summarization capability was negotiated at sign-in."""


class TranslationError(RuntimeError):
    """Raised when translating summary points fails."""


class ScanInProgressError(RuntimeError):
    """Raised when a scan is requested while another one is running."""


class StaleSessionError(RuntimeError):
    """Raised when an operation completes after its session has ended."""


class AuthProvider(Protocol):
    """Source of bearer credentials for the mail store."""

    async def acquire_token(self, interactive: bool = True) -> Credential:
        """Return a usable credential or raise :class:`AuthError`."""
        raise NotImplementedError

    async def revoke(self, credential: Credential) -> bool:
        """Invalidate ``credential``; return ``True`` when the provider agreed."""
        raise NotImplementedError


class MessageSource(Protocol):
    """Search-and-fetch view of the mail store used by the pipeline."""

    async def fetch_messages(
        self, query: str, max_results: int, *, strict: bool = False
    ) -> list[MessageDetail]:
        """Return full messages matching ``query``."""
        raise NotImplementedError


class MailGateway(MessageSource, Protocol):
    """Mail store operations including label mutation."""

    async def mutate_labels(
        self,
        message_id: str,
        add_labels: Sequence[str] = (),
        remove_labels: Sequence[str] = (),
    ) -> bool:
        """Apply label changes, returning ``False`` instead of raising."""
        raise NotImplementedError

    async def trash(self, message_id: str) -> bool:
        """Move a message to the trash."""
        raise NotImplementedError

    async def mark_as_read(self, message_id: str) -> bool:
        """Remove the unread label from a message."""
        raise NotImplementedError


class LanguageModel(Protocol):
    """Constrained text generation returning JSON text."""

    async def prompt(self, text: str, response_constraint: OutputConstraint) -> str:
        """Return JSON text satisfying ``response_constraint``."""
        raise NotImplementedError


class StreamingSummarizer(Protocol):
    """Key-point summarizer producing its output incrementally."""

    def summarize_streaming(self, text: str) -> AsyncIterator[str]:
        """Yield summary text chunks."""
        raise NotImplementedError


class Translator(Protocol):
    """Translator bound to one source/target language pair."""

    async def translate(self, text: str) -> str:
        """Return ``text`` in the target language."""
        raise NotImplementedError


class TranslatorFactory(Protocol):
    """Creates translators for language pairs."""

    async def create(self, source_language: str, target_language: str) -> Translator:
        """Return a translator for the requested pair."""
        raise NotImplementedError


class KeyValueStore(Protocol):
    """Minimal persistence with multi-key atomic writes."""

    def get(self, keys: Sequence[str]) -> dict[str, Any]:
        """Return stored values for the keys that exist."""
        raise NotImplementedError

    def set(self, items: Mapping[str, Any]) -> None:
        """Store all ``items`` in one transaction."""
        raise NotImplementedError

    def clear(self, keys: Sequence[str]) -> None:
        """Remove ``keys`` in one transaction."""
        raise NotImplementedError


class ProgressSink(Protocol):
    """Presentation layer receiving scan progress."""

    def on_batch(self, snapshot: Sequence[ScoredMessage]) -> None:
        """Receive the full accumulated collection after each step."""
        raise NotImplementedError

    def set_status(self, message: str) -> None:
        """Receive a human readable status line."""
        raise NotImplementedError


def notify(status: StatusCallback | None, message: str) -> None:
    """Forward a status line when a callback was supplied."""
    if status is not None:
        status(message)


__all__ = [
    "AuthError",
    "AuthProvider",
    "BatchScoringError",
    "KeyValueStore",
    "LanguageModel",
    "MailGateway",
    "MessageSource",
    "ProfileGenerationError",
    "ProgressSink",
    "ScanInProgressError",
    "SearchFetchError",
    "StaleSessionError",
    "StatusCallback",
    "StreamingSummarizer",
    "SummarizationError",
    "SummarizerUnavailableError",
    "TranslationError",
    "Translator",
    "TranslatorFactory",
    "notify",
]
