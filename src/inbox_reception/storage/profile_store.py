"""Persistence of the learned priority profile."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ..core.datetime_utils import from_epoch_millis, to_epoch_millis
from ..core.interfaces import KeyValueStore
from ..core.models import ProfileRecord, UserProfile

LOGGER = logging.getLogger(__name__)

PROFILE_KEY = "gmail_ai_user_profile"
TIMESTAMP_KEY = "gmail_ai_last_analysis_ts"
STORAGE_KEYS = (PROFILE_KEY, TIMESTAMP_KEY)


class ProfileStore:
    """Read and write :class:`ProfileRecord` values as one unit."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load(self) -> ProfileRecord | None:
        """Return the stored record, or ``None`` when absent or unreadable."""
        data = self._store.get(STORAGE_KEYS)
        raw_profile = data.get(PROFILE_KEY)
        built_at = from_epoch_millis(data.get(TIMESTAMP_KEY))
        if raw_profile is None or built_at is None:
            return None
        try:
            profile = UserProfile.model_validate(raw_profile)
        except ValidationError as exc:
            LOGGER.warning("Stored profile is invalid and will be rebuilt: %s", exc)
            return None
        return ProfileRecord(profile=profile, built_at=built_at)

    def save(self, record: ProfileRecord) -> None:
        self._store.set(
            {
                PROFILE_KEY: record.profile.to_payload(),
                TIMESTAMP_KEY: to_epoch_millis(record.built_at),
            }
        )

    def clear(self) -> None:
        self._store.clear(STORAGE_KEYS)


__all__ = ["PROFILE_KEY", "ProfileStore", "STORAGE_KEYS", "TIMESTAMP_KEY"]
