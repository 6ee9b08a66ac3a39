"""Factory for creating profile stores."""

from strata.config import Config
from strata.core.profile_store.base import ProfileStore
from strata.core.profile_store.memory_store import InMemoryProfileStore
from strata.core.profile_store.sqlite_store import SQLiteProfileStore
from strata.utils.exceptions import ConfigurationError


class ProfileStoreFactory:
    """Create profile stores from configuration."""

    @staticmethod
    def create(config: Config) -> ProfileStore:
        """
        Create a profile store.

        Args:
            config: Configuration object

        Returns:
            ProfileStore instance

        Raises:
            ConfigurationError: If backend is not supported
        """
        backend = config.store.backend

        if backend == "memory":
            return InMemoryProfileStore()
        elif backend == "sqlite":
            return SQLiteProfileStore(db_path=config.store.sqlite_path)
        else:
            raise ConfigurationError(
                f"Unknown store backend: {backend}",
                context={"backend": backend, "supported": ["memory", "sqlite"]},
            )
