"""Tests for session-aware orchestration."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from inbox_reception.core.interfaces import (
    AuthError,
    ScanInProgressError,
    SearchFetchError,
    SummarizerUnavailableError,
)
from inbox_reception.core.models import Capabilities, PENDING_SCORE
from inbox_reception.intelligence.llm import LLMError
from inbox_reception.intelligence.prompts import PROFILE_SCHEMA
from inbox_reception.service import COMPLETE_STATUS
from inbox_reception.storage.profile_store import PROFILE_KEY

from conftest import FakeAuth, FakeMail, MemoryStore, RecordingSink, ScriptedModel, make_detail


class GatedModel(ScriptedModel):
    """Scripted model that pauses on a chosen prompt kind until released."""

    def __init__(self, pause_on_profile: bool, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.pause_on_profile = pause_on_profile
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def prompt(self, text: str, response_constraint: Mapping[str, Any]) -> str:
        is_profile = response_constraint is PROFILE_SCHEMA
        if is_profile == self.pause_on_profile:
            self.entered.set()
            await self.release.wait()
        return await super().prompt(text, response_constraint)


def _window(*ids: str) -> FakeMail:
    return FakeMail(window=[make_detail(mid, sender=f"{mid}@example.com") for mid in ids])


@pytest.mark.asyncio
async def test_analyze_requires_sign_in(reception_factory) -> None:
    service = reception_factory()
    with pytest.raises(AuthError):
        await service.analyze(RecordingSink())


@pytest.mark.asyncio
async def test_full_scan_reports_progress_and_sorts(reception_factory) -> None:
    store = MemoryStore()
    service = reception_factory(
        _window("a", "b", "c"), ScriptedModel(scores={"a": 10, "b": 90, "c": 50}), store=store
    )
    await service.sign_in()
    sink = RecordingSink()

    final = await service.analyze(sink)

    assert [item.id for item in final] == ["a", "b", "c"]
    assert len(sink.snapshots) == 2
    assert sink.statuses[0] == "1/2: Loading user profile..."
    assert sink.statuses[-1] == COMPLETE_STATUS
    assert [item.id for item in service.latest()] == ["b", "c", "a"]
    assert service.find("c") is not None
    assert PROFILE_KEY in store.data
    assert not service.scanning


@pytest.mark.asyncio
async def test_second_scan_is_rejected_while_running(reception_factory) -> None:
    model = GatedModel(pause_on_profile=False)
    service = reception_factory(_window("a"), model)
    await service.sign_in()

    first = asyncio.create_task(service.analyze(RecordingSink()))
    await model.entered.wait()
    with pytest.raises(ScanInProgressError):
        await service.analyze(RecordingSink())
    model.release.set()
    await first

    assert not service.scanning
    await service.analyze(RecordingSink())


@pytest.mark.asyncio
async def test_sign_out_mid_scan_discards_results(reception_factory) -> None:
    model = GatedModel(pause_on_profile=False)
    service = reception_factory(_window("a", "b"), model)
    await service.sign_in()
    sink = RecordingSink()

    scan = asyncio.create_task(service.analyze(sink))
    await model.entered.wait()
    await service.sign_out()
    model.release.set()

    assert await scan == ()
    assert len(sink.snapshots) == 1
    assert all(item.score == PENDING_SCORE for item in sink.snapshots[0])
    assert COMPLETE_STATUS not in sink.statuses
    assert service.latest() == []


class GatedWindowMail(FakeMail):
    """Mail double that holds the window fetch open, then fails it."""

    def __init__(self, error: Exception) -> None:
        super().__init__(window=[make_detail("a")])
        self.error = error
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch_messages(
        self, query: str, max_results: int, *, strict: bool = False
    ) -> list[Any]:
        if strict:
            self.entered.set()
            await self.release.wait()
            raise self.error
        return await super().fetch_messages(query, max_results, strict=strict)


def _rejected_token_error() -> SearchFetchError:
    try:
        raise AuthError("Gmail rejected the access token")
    except AuthError as cause:
        error = SearchFetchError("Failed to fetch messages")
        error.__cause__ = cause
    return error


@pytest.mark.asyncio
async def test_auth_failure_from_ended_session_leaves_new_session_alone(
    reception_factory,
) -> None:
    mail = GatedWindowMail(_rejected_token_error())
    service = reception_factory(mail)
    await service.sign_in()
    sink = RecordingSink()

    scan = asyncio.create_task(service.analyze(sink))
    await mail.entered.wait()
    await service.sign_out()
    fresh = await service.sign_in()
    mail.release.set()

    assert await scan == ()
    assert service.session.current is fresh
    assert not any(line.startswith("Auth error:") for line in sink.statuses)
    assert not service.scanning


@pytest.mark.asyncio
async def test_window_failure_after_sign_out_is_discarded(reception_factory) -> None:
    mail = GatedWindowMail(SearchFetchError("Failed to fetch messages"))
    service = reception_factory(mail)
    await service.sign_in()
    sink = RecordingSink()

    scan = asyncio.create_task(service.analyze(sink))
    await mail.entered.wait()
    await service.sign_out()
    mail.release.set()

    assert await scan == ()
    assert not any(line.startswith("Error:") for line in sink.statuses)


@pytest.mark.asyncio
async def test_sign_out_during_profile_build_persists_nothing(reception_factory) -> None:
    model = GatedModel(pause_on_profile=True)
    store = MemoryStore()
    service = reception_factory(_window("a"), model, store=store)
    await service.sign_in()
    sink = RecordingSink()

    scan = asyncio.create_task(service.analyze(sink))
    await model.entered.wait()
    await service.sign_out()
    model.release.set()

    assert await scan == ()
    assert store.data == {}
    assert sink.snapshots == []


@pytest.mark.asyncio
async def test_auth_failure_during_window_fetch_ends_session(reception_factory) -> None:
    mail = _window("a")
    try:
        raise AuthError("Gmail rejected the access token")
    except AuthError as cause:
        error = SearchFetchError("Failed to fetch messages")
        error.__cause__ = cause
    mail.window_error = error
    service = reception_factory(mail)
    await service.sign_in()
    sink = RecordingSink()

    with pytest.raises(AuthError):
        await service.analyze(sink)

    assert service.session.current is None
    assert sink.statuses[-1].startswith("Auth error:")


@pytest.mark.asyncio
async def test_window_fetch_failure_keeps_session(reception_factory) -> None:
    mail = _window("a")
    mail.window_error = SearchFetchError("Failed to fetch messages")
    service = reception_factory(mail)
    await service.sign_in()
    sink = RecordingSink()

    with pytest.raises(SearchFetchError):
        await service.analyze(sink)

    assert service.session.current is not None
    assert sink.statuses[-1].startswith("Error:")
    assert not service.scanning


@pytest.mark.asyncio
async def test_sign_out_revokes_and_clears_profile(reception_factory) -> None:
    auth = FakeAuth()
    store = MemoryStore()
    service = reception_factory(_window("a"), auth=auth, store=store)
    await service.sign_in()
    await service.analyze(RecordingSink())
    assert PROFILE_KEY in store.data

    assert await service.sign_out() is True
    assert auth.revoked == ["token-123"]
    assert store.data == {}
    assert await service.sign_out() is False


@pytest.mark.asyncio
async def test_sign_in_failure_leaves_no_session(reception_factory) -> None:
    service = reception_factory(probe_error=LLMError("Model missing"))
    with pytest.raises(LLMError):
        await service.sign_in()
    assert service.session.current is None

    service = reception_factory(auth=FakeAuth(token=None))
    with pytest.raises(AuthError):
        await service.sign_in()


@pytest.mark.asyncio
async def test_message_actions_delegate_to_mail(reception_factory) -> None:
    mail = _window("a")
    service = reception_factory(mail)
    await service.sign_in()

    assert await service.mark_as_read("a") is True
    assert await service.trash("a") is True
    assert mail.mutations == [("a", (), ("UNREAD",)), ("a", ("TRASH",), ())]


@pytest.mark.asyncio
async def test_capabilities_gate_summaries_and_translations(reception_factory) -> None:
    service = reception_factory(capabilities=Capabilities())
    await service.sign_in()

    assert not service.summarizer().available
    assert not service.translator().available
    with pytest.raises(SummarizerUnavailableError):
        await service.summarize("body")


@pytest.mark.asyncio
async def test_translators_are_reused_within_a_session(reception_factory) -> None:
    service = reception_factory()
    factory = service._translator_factory
    await service.sign_in()

    await service.translate("es", ["hi"])
    await service.translate("es", ["there"])
    assert factory.created == [("en", "es")]

    await service.sign_out()
    await service.sign_in()
    await service.translate("es", ["again"])
    assert factory.created == [("en", "es"), ("en", "es")]


@pytest.mark.asyncio
async def test_summarize_returns_points(reception_factory) -> None:
    service = reception_factory()
    await service.sign_in()

    assert await service.summarize("body") == ["First", "Second"]
