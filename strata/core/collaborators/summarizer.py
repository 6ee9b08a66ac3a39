"""
Abstract base class for narrative summarizers.
Turns structured claims and analyses into opaque display text.
"""

from abc import ABC, abstractmethod

from strata.core.taxonomy import get_layer
from strata.models.claim import Claim, ClaimPolarity
from strata.models.relational import DeepAnalysis


class NarrativeSummarizer(ABC):
    """
    Abstract base for narrative text providers.

    Responsibilities:
    - One-line statement for a claim
    - Short narrative for a pairwise deep analysis

    Output is opaque: the engine stores it but never parses it.
    """

    @abstractmethod
    async def describe_claim(self, claim: Claim) -> str:
        """
        Produce a statement for a claim.

        Args:
            claim: Claim to describe

        Returns:
            Display text

        Raises:
            Exception: Provider-specific errors (wrapped by the caller)
        """
        pass

    @abstractmethod
    async def narrate_pair(self, analysis: DeepAnalysis) -> str:
        """
        Produce a narrative for a deep analysis.

        Args:
            analysis: Structured analysis without narrative

        Returns:
            Display text
        """
        pass

    async def close(self):
        """
        Close any open connections.
        Optional to override if provider needs cleanup.
        """
        return None


_POLARITY_PHRASES = {
    ClaimPolarity.STRENGTH: "shows up as a steady strength",
    ClaimPolarity.FRICTION: "shows up as a point of friction",
    ClaimPolarity.NEUTRAL: "shows up as a consistent tendency",
}


class TemplateSummarizer(NarrativeSummarizer):
    """Deterministic summarizer built from layer names and fixed phrases."""

    async def describe_claim(self, claim: Claim) -> str:
        names = " and ".join(get_layer(layer_id).name for layer_id in claim.layer_ids)
        return f"{names} {_POLARITY_PHRASES[claim.polarity]} ({claim.band.value})."

    async def narrate_pair(self, analysis: DeepAnalysis) -> str:
        parts = [f"Base compatibility {analysis.base_score:.0f}/100."] if analysis.base_score is not None else []
        if analysis.shared_pattern_ids:
            parts.append(f"{len(analysis.shared_pattern_ids)} shared patterns.")
        if analysis.friction_layer_ids:
            names = ", ".join(get_layer(i).name for i in analysis.friction_layer_ids)
            parts.append(f"Friction around {names}.")
        if analysis.complementary_layer_ids:
            names = ", ".join(get_layer(i).name for i in analysis.complementary_layer_ids)
            parts.append(f"Complementary in {names}.")
        return " ".join(parts)
