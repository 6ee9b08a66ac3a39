"""Credit/entitlement gate consulted before premium analyses."""

from abc import ABC, abstractmethod

from strata.models.relational import EntitlementDecision

DEEP_ANALYSIS_FEATURE = "deep_analysis"


class EntitlementGate(ABC):
    """Decides whether a user may run a paid feature."""

    @abstractmethod
    async def can_generate(self, user_id: str, feature: str) -> EntitlementDecision:
        """
        Check entitlement.

        Args:
            user_id: Requesting user
            feature: Feature key, e.g. "deep_analysis"

        Returns:
            EntitlementDecision with allowed flag, reason and credit cost
        """
        pass


class StaticEntitlementGate(EntitlementGate):
    """Gate returning a fixed decision. For local runs and tests."""

    def __init__(self, allowed: bool = True, reason: str | None = None, credits_required: int | None = None):
        self.decision = EntitlementDecision(
            allowed=allowed, reason=reason, credits_required=credits_required
        )

    async def can_generate(self, user_id: str, feature: str) -> EntitlementDecision:
        return self.decision
