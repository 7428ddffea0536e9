"""Storage adapters."""

from .profile_store import ProfileStore
from .sqlite import SqliteKeyValueStore

__all__ = ["ProfileStore", "SqliteKeyValueStore"]
