"""Learn and cache the user's priority profile from mailbox history."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Literal

from inbox_reception.core.config import ProfileSettings
from inbox_reception.core.datetime_utils import utc_now
from inbox_reception.core.interfaces import (
    LanguageModel,
    MessageSource,
    ProfileGenerationError,
    StatusCallback,
    notify,
)
from inbox_reception.core.models import ProfileRecord, UserProfile
from inbox_reception.storage.profile_store import ProfileStore

from .llm import LLMError
from .prompts import PROFILE_SCHEMA, build_profile_prompt

LOGGER = logging.getLogger(__name__)

IMPORTANT_QUERY = "is:important or is:starred"
IGNORED_QUERY = "is:unread older_than:2d"
SPAM_QUERY = "in:spam"
TRASH_QUERY = "in:trash"
ProfileSource = Literal["cached", "missing", "stale"]


class ProfileBuilder:
    """Derive a :class:`UserProfile` from four historical message samples."""

    def __init__(
        self,
        source: MessageSource,
        model: LanguageModel,
        store: ProfileStore,
        settings: ProfileSettings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._source = source
        self._model = model
        self._store = store
        self._settings = settings
        self._clock = clock

    async def build(
        self,
        status: StatusCallback | None = None,
        *,
        before_save: Callable[[], None] | None = None,
    ) -> UserProfile:
        """Sample history, ask the model for a profile and persist it.

        Sampling failures degrade to empty samples. Anything the model returns
        that is not a complete profile raises :class:`ProfileGenerationError`
        and leaves the stored profile untouched.

        ``before_save`` runs just before persisting and may raise to abort.
        """
        notify(status, "Analyzing your historical email priorities...")
        important, ignored, spam, trashed = await asyncio.gather(
            self._source.fetch_messages(IMPORTANT_QUERY, self._settings.important_sample),
            self._source.fetch_messages(IGNORED_QUERY, self._settings.ignored_sample),
            self._source.fetch_messages(SPAM_QUERY, self._settings.spam_sample),
            self._source.fetch_messages(TRASH_QUERY, self._settings.trash_sample),
        )
        LOGGER.info(
            "Profile samples: important=%d ignored=%d spam=%d trash=%d",
            len(important),
            len(ignored),
            len(spam),
            len(trashed),
        )
        prompt = build_profile_prompt(
            important=important, ignored=ignored, spam=spam, trashed=trashed
        )

        notify(status, "Generating user profile with AI...")
        try:
            raw_output = await self._model.prompt(prompt, PROFILE_SCHEMA)
            profile = UserProfile.model_validate(json.loads(raw_output))
        except (LLMError, ValueError) as exc:
            LOGGER.error("Failed to parse user profile from AI: %s", exc)
            raise ProfileGenerationError(
                "Could not generate user behavior profile."
            ) from exc

        if before_save is not None:
            before_save()
        self._store.save(ProfileRecord(profile=profile, built_at=self._clock()))
        LOGGER.info(
            "Built profile with %d high and %d low priority senders",
            len(profile.high_priority_senders),
            len(profile.low_priority_senders),
        )
        return profile


class ProfileCache:
    """Serve the stored profile while fresh, rebuilding it otherwise."""

    def __init__(
        self,
        store: ProfileStore,
        builder: ProfileBuilder,
        settings: ProfileSettings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._builder = builder
        self._max_age = timedelta(hours=settings.refresh_hours)
        self._clock = clock
        self.last_source: ProfileSource | None = None

    def describe(self) -> ProfileSource | None:
        """Return why the last call used the profile it did."""
        return self.last_source

    async def get_or_build(
        self,
        status: StatusCallback | None = None,
        *,
        before_save: Callable[[], None] | None = None,
    ) -> UserProfile:
        """Return a profile no older than the refresh interval."""
        record = self._store.load()
        if record is not None and not record.is_stale(self._clock(), self._max_age):
            self.last_source = "cached"
            notify(status, "1/2: User profile loaded from storage.")
            return record.profile

        self.last_source = "missing" if record is None else "stale"
        reason = "No profile found." if record is None else "Profile is stale."
        LOGGER.info("Rebuilding profile: %s", reason)
        notify(status, f"1/2: {reason} Generating new one...")
        return await self._builder.build(status, before_save=before_save)


__all__ = [
    "IGNORED_QUERY",
    "IMPORTANT_QUERY",
    "ProfileBuilder",
    "ProfileCache",
    "SPAM_QUERY",
    "TRASH_QUERY",
]
