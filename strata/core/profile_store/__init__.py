"""
Profile store implementations for Strata.

Provides abstract base and concrete implementations for profile storage.

Available backends:
- InMemoryProfileStore: Process-local dictionaries (default)
- SQLiteProfileStore: Local persistence on aiosqlite
"""

from strata.core.profile_store.base import ProfileStore
from strata.core.profile_store.factory import ProfileStoreFactory
from strata.core.profile_store.memory_store import InMemoryProfileStore
from strata.core.profile_store.sqlite_store import SQLiteProfileStore

__all__ = [
    "ProfileStore",
    "ProfileStoreFactory",
    "InMemoryProfileStore",
    "SQLiteProfileStore",
]
