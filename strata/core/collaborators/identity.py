"""Identity resolution for display names."""

from abc import ABC, abstractmethod


class IdentityResolver(ABC):
    """Maps user ids to display names."""

    @abstractmethod
    async def resolve(self, user_ids: list[str]) -> dict[str, str]:
        """
        Resolve display names.

        Args:
            user_ids: Users to resolve

        Returns:
            Mapping user_id -> display name; unknown users are omitted
        """
        pass


class StaticIdentityResolver(IdentityResolver):
    """In-process lookup table."""

    def __init__(self, names: dict[str, str] | None = None):
        self.names = dict(names or {})

    async def resolve(self, user_ids: list[str]) -> dict[str, str]:
        return {uid: self.names[uid] for uid in user_ids if uid in self.names}
