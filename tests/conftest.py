"""Shared test doubles for the mail store, the model and the session."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from typing import Any

import pytest

from inbox_reception.core.config import AppSettings
from inbox_reception.core.datetime_utils import utc_now
from inbox_reception.core.interfaces import AuthError, LanguageModel, TranslationError
from inbox_reception.core.models import Capabilities, Credential, MessageDetail
from inbox_reception.core.session import SessionManager
from inbox_reception.intelligence.llm import LLMError
from inbox_reception.intelligence.prompts import PROFILE_SCHEMA
from inbox_reception.service import ReceptionService
from inbox_reception.storage.profile_store import ProfileStore

WINDOW_PREFIX = "is:inbox is:unread after:"

DEFAULT_PROFILE = {
    "highPrioritySenders": ["boss@example.com"],
    "highPriorityKeywords": ["invoice"],
    "lowPrioritySenders": ["news@example.com"],
    "lowPriorityKeywords": ["newsletter"],
}


def make_detail(
    message_id: str,
    sender: str = "someone@example.com",
    subject: str = "Hello",
    snippet: str = "Body text",
) -> MessageDetail:
    return MessageDetail(
        id=message_id,
        headers=(("From", sender), ("Subject", subject)),
        snippet=snippet,
    )


def batch_ids(prompt: str) -> list[str]:
    """Extract the message ids sent in a scoring prompt."""
    emails_line = prompt.split("EMAILS TO ANALYZE: ", 1)[1].splitlines()[0]
    return [item["id"] for item in json.loads(emails_line)]


def analysis(message_id: str, score: Any, title: str | None = None) -> dict[str, Any]:
    return {
        "id": message_id,
        "score": score,
        "summarizedTitle": title or f"Title {message_id}",
        "summaryPoints": [f"Point for {message_id}"],
        "positiveReasons": [],
        "negativeReasons": [],
    }


class MemoryStore:
    """Dictionary-backed key-value store."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    def get(self, keys: Sequence[str]) -> dict[str, Any]:
        return {key: self.data[key] for key in keys if key in self.data}

    def set(self, items: Mapping[str, Any]) -> None:
        self.data.update(items)

    def clear(self, keys: Sequence[str]) -> None:
        for key in keys:
            self.data.pop(key, None)


class FakeMail:
    """Mail gateway returning canned history samples and a scoring window."""

    def __init__(
        self,
        window: Sequence[MessageDetail] = (),
        history: Mapping[str, Sequence[MessageDetail]] | None = None,
    ) -> None:
        self.window = list(window)
        self.history = dict(history or {})
        self.window_error: Exception | None = None
        self.queries: list[tuple[str, int, bool]] = []
        self.mutations: list[tuple[str, tuple[str, ...], tuple[str, ...]]] = []
        self.mutation_result = True

    async def fetch_messages(
        self, query: str, max_results: int, *, strict: bool = False
    ) -> list[MessageDetail]:
        self.queries.append((query, max_results, strict))
        if query.startswith(WINDOW_PREFIX):
            if self.window_error is not None:
                raise self.window_error
            return self.window[:max_results]
        return list(self.history.get(query, ()))[:max_results]

    async def mutate_labels(
        self,
        message_id: str,
        add_labels: Sequence[str] = (),
        remove_labels: Sequence[str] = (),
    ) -> bool:
        self.mutations.append((message_id, tuple(add_labels), tuple(remove_labels)))
        return self.mutation_result

    async def trash(self, message_id: str) -> bool:
        return await self.mutate_labels(message_id, ["TRASH"], [])

    async def mark_as_read(self, message_id: str) -> bool:
        return await self.mutate_labels(message_id, [], ["UNREAD"])


class ScriptedModel(LanguageModel):
    """Answers profile prompts with a fixed profile and scoring prompts per id."""

    def __init__(
        self,
        scores: Mapping[str, Any] | None = None,
        profile: Mapping[str, Any] | None = None,
    ) -> None:
        self.scores = dict(scores or {})
        self.profile = dict(profile or DEFAULT_PROFILE)
        self.prompts: list[str] = []
        self.failing_batches: set[int] = set()
        self.scoring_calls = 0

    async def prompt(self, text: str, response_constraint: Mapping[str, Any]) -> str:
        self.prompts.append(text)
        if response_constraint is PROFILE_SCHEMA:
            return json.dumps(self.profile)
        self.scoring_calls += 1
        if self.scoring_calls in self.failing_batches:
            raise LLMError("model crashed")
        return json.dumps(
            [analysis(mid, self.scores.get(mid, 50)) for mid in batch_ids(text)]
        )


class FakeAuth:
    def __init__(self, token: str | None = "token-123", revoke_result: bool = True):
        self.token = token
        self.revoke_result = revoke_result
        self.revoked: list[str] = []

    async def acquire_token(self, interactive: bool = True) -> Credential:
        if self.token is None:
            raise AuthError("No access token available")
        return Credential(token=self.token, acquired_at=utc_now())

    async def revoke(self, credential: Credential) -> bool:
        self.revoked.append(credential.token)
        return self.revoke_result


class FakeStreamer:
    def __init__(self, chunks: Sequence[str] = ("- First\n", "- Second")) -> None:
        self.chunks = list(chunks)
        self.fail_after: int | None = None

    async def summarize_streaming(self, text: str) -> AsyncIterator[str]:
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise LLMError("stream interrupted")
            yield chunk


class PrefixTranslator:
    def __init__(self, target_language: str, fail: bool = False) -> None:
        self.target_language = target_language
        self.fail = fail

    async def translate(self, text: str) -> str:
        if self.fail:
            raise LLMError("translator crashed")
        return f"[{self.target_language}] {text}"


class FakeTranslatorFactory:
    def __init__(self, supported: Sequence[str] = ("es", "fr", "de")) -> None:
        self.supported = set(supported)
        self.created: list[tuple[str, str]] = []
        self.fail_translations = False

    async def create(self, source_language: str, target_language: str) -> PrefixTranslator:
        if target_language not in self.supported:
            raise TranslationError(f"Unsupported target language '{target_language}'")
        self.created.append((source_language, target_language))
        return PrefixTranslator(target_language, fail=self.fail_translations)


@pytest.fixture
def reception_factory() -> Callable[..., ReceptionService]:
    """Return a builder for services wired to test doubles."""

    def build(
        mail: FakeMail | None = None,
        model: LanguageModel | None = None,
        *,
        auth: FakeAuth | None = None,
        store: MemoryStore | None = None,
        capabilities: Capabilities = Capabilities(summarization=True, translation=True),
        probe_error: Exception | None = None,
        summarizer: FakeStreamer | None = None,
        translator_factory: FakeTranslatorFactory | None = None,
        settings: AppSettings | None = None,
        clock: Callable[..., Any] = utc_now,
    ) -> ReceptionService:
        async def probe() -> Capabilities:
            if probe_error is not None:
                raise probe_error
            return capabilities

        return ReceptionService(
            settings or AppSettings(),
            session=SessionManager(),
            auth=auth or FakeAuth(),
            mail=mail or FakeMail(),
            model=model or ScriptedModel(),
            summarizer=summarizer or FakeStreamer(),
            translator_factory=translator_factory or FakeTranslatorFactory(),
            capability_probe=probe,
            profile_store=ProfileStore(store if store is not None else MemoryStore()),
            clock=clock,
        )

    return build


class RecordingSink:
    """Progress sink recording every snapshot and status line."""

    def __init__(self) -> None:
        self.snapshots: list[tuple[Any, ...]] = []
        self.statuses: list[str] = []

    def on_batch(self, snapshot: Sequence[Any]) -> None:
        self.snapshots.append(tuple(snapshot))

    def set_status(self, message: str) -> None:
        self.statuses.append(message)
