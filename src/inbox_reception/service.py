"""Session-aware orchestration of profile building, scoring and actions."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime

from .core.config import AppSettings
from .core.datetime_utils import utc_now
from .core.interfaces import (
    AuthError,
    AuthProvider,
    KeyValueStore,
    LanguageModel,
    MailGateway,
    ProfileGenerationError,
    ProgressSink,
    ScanInProgressError,
    SearchFetchError,
    StaleSessionError,
    StreamingSummarizer,
    TranslatorFactory,
)
from .core.models import Capabilities, ScoredMessage
from .core.session import SessionContext, SessionManager
from .intelligence.llm import LLMError, OllamaClient, negotiate_capabilities
from .intelligence.profile import ProfileBuilder, ProfileCache
from .intelligence.ranking import sort_by_score
from .intelligence.scoring import ScoringEngine, Snapshot
from .intelligence.summarizer import DetailSummarizer, SummaryAccumulator
from .intelligence.translator import OllamaTranslatorFactory, TranslatorAdapter
from .storage.profile_store import ProfileStore
from .transport.auth import TokenAuthProvider
from .transport.gmail_client import GmailClient

LOGGER = logging.getLogger(__name__)

COMPLETE_STATUS = "Analysis complete. All emails have been processed and sorted."

CapabilityProbe = Callable[[], Awaitable[Capabilities]]


class ReceptionService:
    """Entry point used by the CLI and web surfaces.

    The service owns the session. Every operation captures the session id
    when it starts and drops its results if the user signed out (or signed
    in again) before it finished. Only one scan may run at a time.
    """

    def __init__(
        self,
        settings: AppSettings,
        *,
        session: SessionManager,
        auth: AuthProvider,
        mail: MailGateway,
        model: LanguageModel,
        summarizer: StreamingSummarizer,
        translator_factory: TranslatorFactory,
        capability_probe: CapabilityProbe,
        profile_store: ProfileStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._session = session
        self._auth = auth
        self._mail = mail
        self._summarizer = summarizer
        self._translator_factory = translator_factory
        self._probe = capability_probe
        self._profile_store = profile_store
        builder = ProfileBuilder(
            mail, model, profile_store, settings.profile, clock=clock
        )
        self._profiles = ProfileCache(
            profile_store, builder, settings.profile, clock=clock
        )
        self._engine = ScoringEngine(mail, model, settings.scoring, clock=clock)
        self._scan_active = False
        self._latest: Snapshot = ()

    # Session lifecycle --------------------------------------------------------
    @property
    def session(self) -> SessionManager:
        return self._session

    @property
    def scanning(self) -> bool:
        return self._scan_active

    async def sign_in(self, interactive: bool = True) -> SessionContext:
        """Acquire a credential and negotiate optional capabilities."""
        try:
            credential = await self._auth.acquire_token(interactive)
            capabilities = await self._probe()
        except (AuthError, LLMError) as exc:
            LOGGER.error("Sign-in failed: %s", exc)
            self._reset()
            raise
        return self._session.begin(credential, capabilities)

    async def sign_out(self) -> bool:
        """End the session, revoke its token and forget the stored profile."""
        ended = self._reset()
        if ended is None:
            return False
        revoked = await self._auth.revoke(ended.credential)
        self._profile_store.clear()
        LOGGER.info("Signed out (token revoked: %s)", revoked)
        return revoked

    # Scanning -----------------------------------------------------------------
    async def analyze(self, sink: ProgressSink) -> Snapshot:
        """Load or build the profile, then score the recent window into ``sink``.

        Returns the final snapshot, or an empty tuple when the session ended
        while the scan was in flight.
        """
        context = self._session.require()
        if self._scan_active:
            raise ScanInProgressError("A scan is already running")
        self._scan_active = True
        session_id = context.session_id

        def status(message: str) -> None:
            if self._session.is_current(session_id):
                sink.set_status(message)

        def before_save() -> None:
            self._session.ensure_current(session_id)

        try:
            status("1/2: Loading user profile...")
            profile = await self._profiles.get_or_build(status, before_save=before_save)
            final: Snapshot = ()
            async for snapshot in self._engine.iter_snapshots(profile, status):
                self._session.ensure_current(session_id)
                self._latest = snapshot
                sink.on_batch(snapshot)
                final = snapshot
            status(COMPLETE_STATUS)
            return final
        except StaleSessionError as exc:
            LOGGER.info("Discarding scan results: %s", exc)
            return ()
        except SearchFetchError as exc:
            if self._discarded(session_id, exc):
                return ()
            if isinstance(exc.__cause__, AuthError):
                self._reset()
                sink.set_status(f"Auth error: {exc.__cause__}")
                raise exc.__cause__ from exc
            status(f"Error: {exc}. See logs for details.")
            raise
        except ProfileGenerationError as exc:
            if self._discarded(session_id, exc):
                return ()
            status(f"Error: {exc} See logs for details.")
            raise
        finally:
            self._scan_active = False

    def _discarded(self, session_id: int, exc: Exception) -> bool:
        # A failure from an ended session must not touch the session that replaced it.
        if self._session.is_current(session_id):
            return False
        LOGGER.info("Discarding failed scan from session %s: %s", session_id, exc)
        return True

    def latest(self) -> list[ScoredMessage]:
        """Return the most recent snapshot sorted for display."""
        return sort_by_score(self._latest)

    def find(self, message_id: str) -> ScoredMessage | None:
        return next((item for item in self._latest if item.id == message_id), None)

    # Actions ------------------------------------------------------------------
    async def mark_as_read(self, message_id: str) -> bool:
        self._session.require()
        return await self._mail.mark_as_read(message_id)

    async def trash(self, message_id: str) -> bool:
        self._session.require()
        return await self._mail.trash(message_id)

    def summarizer(self) -> DetailSummarizer:
        """Return a summarizer honouring the negotiated capabilities."""
        context = self._session.require()
        backend = self._summarizer if context.capabilities.summarization else None
        return DetailSummarizer(backend)

    def translator(self) -> TranslatorAdapter:
        """Return a translator adapter sharing the session's translator cache."""
        context = self._session.require()
        factory = (
            self._translator_factory if context.capabilities.translation else None
        )
        return TranslatorAdapter(
            factory,
            source_language=self._settings.translation.source_language,
            cache=context.translators,
        )

    async def summarize(
        self, snippet: str, accumulator: SummaryAccumulator | None = None
    ) -> list[str]:
        """Produce detailed summary points, discarding them on session change."""
        session_id = self._session.require().session_id
        points = await self.summarizer().summarize_points(snippet, accumulator)
        self._session.ensure_current(session_id)
        return points

    async def translate(self, target_language: str, texts: Sequence[str]) -> list[str]:
        """Translate ``texts``, discarding the result on session change."""
        session_id = self._session.require().session_id
        translated = await self.translator().translate(target_language, texts)
        self._session.ensure_current(session_id)
        return translated

    def _reset(self) -> SessionContext | None:
        self._latest = ()
        return self._session.end()


def build_service(settings: AppSettings, store: KeyValueStore) -> ReceptionService:
    """Wire the production adapters for ``settings``."""
    session = SessionManager()
    llm = OllamaClient(settings.llm)
    return ReceptionService(
        settings,
        session=session,
        auth=TokenAuthProvider(settings.auth),
        mail=GmailClient(settings.gmail, session),
        model=llm,
        summarizer=llm,
        translator_factory=OllamaTranslatorFactory(
            llm, settings.translation.languages
        ),
        capability_probe=lambda: negotiate_capabilities(llm),
        profile_store=ProfileStore(store),
    )


__all__ = ["COMPLETE_STATUS", "ReceptionService", "build_service"]
