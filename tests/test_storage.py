"""Tests for SQLite key-value persistence and the profile store."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from inbox_reception.core.config import StorageSettings
from inbox_reception.core.models import ProfileRecord, UserProfile
from inbox_reception.storage import ProfileStore, SqliteKeyValueStore
from inbox_reception.storage.profile_store import PROFILE_KEY, TIMESTAMP_KEY

from conftest import DEFAULT_PROFILE


def _store(tmp_path: Path) -> SqliteKeyValueStore:
    return SqliteKeyValueStore(StorageSettings(db_path=tmp_path / "nested" / "kv.db"))


def test_set_get_and_clear_round_trip(tmp_path: Path) -> None:
    with _store(tmp_path) as store:
        store.set({"a": {"nested": [1, 2]}, "b": 5})
        assert store.get(["a", "b", "missing"]) == {"a": {"nested": [1, 2]}, "b": 5}

        store.set({"b": 6})
        assert store.get(["b"]) == {"b": 6}

        store.clear(["a", "b"])
        assert store.get(["a", "b"]) == {}


def test_values_survive_reopen(tmp_path: Path) -> None:
    with _store(tmp_path) as store:
        store.set({"key": "value"})
    with _store(tmp_path) as store:
        assert store.get(["key"]) == {"key": "value"}


def test_profile_store_round_trip(tmp_path: Path) -> None:
    built_at = datetime(2024, 3, 4, 5, 6, 7, 123000, tzinfo=UTC)
    with _store(tmp_path) as kv:
        profiles = ProfileStore(kv)
        profiles.save(
            ProfileRecord(
                profile=UserProfile.model_validate(DEFAULT_PROFILE), built_at=built_at
            )
        )

        assert kv.get([TIMESTAMP_KEY])[TIMESTAMP_KEY] == 1709528767123
        record = profiles.load()
        assert record is not None
        assert record.built_at == built_at
        assert record.profile.to_payload() == DEFAULT_PROFILE

        profiles.clear()
        assert profiles.load() is None


def test_profile_without_timestamp_is_treated_as_missing(tmp_path: Path) -> None:
    with _store(tmp_path) as kv:
        kv.set({PROFILE_KEY: DEFAULT_PROFILE})
        assert ProfileStore(kv).load() is None


def test_corrupt_profile_is_treated_as_missing(tmp_path: Path) -> None:
    with _store(tmp_path) as kv:
        kv.set({PROFILE_KEY: {"highPrioritySenders": "nope"}, TIMESTAMP_KEY: 1})
        assert ProfileStore(kv).load() is None
