"""Explicit session state replacing process-wide globals."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field

from .interfaces import AuthError, StaleSessionError, Translator
from .models import Capabilities, Credential

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionContext:
    """State owned by one signed-in session."""

    session_id: int
    credential: Credential
    capabilities: Capabilities
    translators: dict[str, Translator] = field(default_factory=dict)


class SessionManager:
    """Track the active session and hand out monotonically increasing ids.

    Every sign-in and sign-out bumps the id, so work started under an older
    id can detect that its results no longer belong to the active session.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._generation = 0
        self._current: SessionContext | None = None

    @property
    def current(self) -> SessionContext | None:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self, credential: Credential, capabilities: Capabilities) -> SessionContext:
        """Start a new session and return its context."""
        self._generation = next(self._ids)
        self._current = SessionContext(
            session_id=self._generation,
            credential=credential,
            capabilities=capabilities,
        )
        LOGGER.info("Session %s started", self._generation)
        return self._current

    def end(self) -> SessionContext | None:
        """Close the active session, returning the context that ended."""
        ended = self._current
        self._current = None
        self._generation = next(self._ids)
        if ended is not None:
            LOGGER.info("Session %s ended", ended.session_id)
        return ended

    def require(self) -> SessionContext:
        """Return the active session or raise :class:`AuthError`."""
        if self._current is None:
            raise AuthError("Not signed in")
        return self._current

    def is_current(self, session_id: int) -> bool:
        return self._current is not None and self._current.session_id == session_id

    def ensure_current(self, session_id: int) -> None:
        """Raise :class:`StaleSessionError` when ``session_id`` is no longer active."""
        if not self.is_current(session_id):
            raise StaleSessionError(
                f"Session {session_id} ended before the operation completed"
            )


__all__ = ["SessionContext", "SessionManager"]
