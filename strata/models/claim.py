"""
Claim model - a confidence-scored assertion tied to profile layers.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from strata.core.taxonomy import RelationshipType

EMERGING_THRESHOLD = 0.5


class ClaimPolarity(str, Enum):
    """Whether a claim reads as a strength, a friction point, or neither."""

    STRENGTH = "strength"
    FRICTION = "friction"
    NEUTRAL = "neutral"


class ConfidenceBand(str, Enum):
    """Coarse confidence bands."""

    EMERGING = "emerging"
    MODERATE = "moderate"
    DEVELOPED = "developed"
    INTEGRATED = "integrated"


class Resonance(str, Enum):
    """User resonance feedback on a claim."""

    FITS = "fits"
    PARTIAL = "partial"
    DOESNT_FIT = "doesnt_fit"


class ResonanceEvent(BaseModel):
    """One recorded resonance vote and its effect."""

    model_config = {"frozen": True}

    feedback_id: str
    resonance: Resonance
    context_tags: tuple[str, ...] = ()
    previous_confidence: float = Field(..., ge=0.0, le=1.0)
    new_confidence: float = Field(..., ge=0.0, le=1.0)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def delta(self) -> float:
        return self.new_confidence - self.previous_confidence


class Claim(BaseModel):
    """
    Atomic unit of profile insight.

    Claims are owned by one user and never deleted. Every change produces
    a new Claim object so snapshots holding the old one keep their meaning.

    Confidence is derived from two inputs:
    - extraction_confidence: strength of the supporting signal set
    - resonance_history: feedback votes replayed on top of it
    """

    model_config = {"frozen": True}

    claim_id: str = Field(..., description="Unique claim ID (clm_Lnn_xxx)")
    user_id: str = Field(..., description="Owner user ID")
    layer_ids: tuple[int, ...] = Field(..., min_length=1, description="Layers the claim is attached to")
    topic: str = Field(..., description="Semantic key used for merge detection")
    statement: str = Field(default="", description="Opaque narrative from the summarizer")
    polarity: ClaimPolarity = Field(default=ClaimPolarity.NEUTRAL)
    confidence: float = Field(..., ge=0.0, le=1.0)
    extraction_confidence: float = Field(..., ge=0.0, le=1.0)
    supporting_signal_ids: tuple[str, ...] = Field(default=())
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_adjusted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    resonance_history: tuple[ResonanceEvent, ...] = Field(default=())
    relational_contexts: tuple[RelationshipType, ...] = Field(default=())

    @property
    def support_count(self) -> int:
        return len(self.supporting_signal_ids)

    @property
    def band(self) -> ConfidenceBand:
        return confidence_band(self.confidence)

    @property
    def context_tags(self) -> set[str]:
        """All context tags recorded across resonance votes."""
        return {tag for event in self.resonance_history for tag in event.context_tags}

    def is_emerging(self, threshold: float = EMERGING_THRESHOLD) -> bool:
        return self.confidence < threshold

    def is_retired(self, threshold: float) -> bool:
        """Retired claims are kept but excluded from derivation."""
        return self.confidence < threshold

    def shares_layer_with(self, other: "Claim") -> bool:
        return bool(set(self.layer_ids) & set(other.layer_ids))


def confidence_band(confidence: float) -> ConfidenceBand:
    """Map a numeric confidence onto its band."""
    if confidence >= 0.85:
        return ConfidenceBand.INTEGRATED
    if confidence >= 0.7:
        return ConfidenceBand.DEVELOPED
    if confidence >= EMERGING_THRESHOLD:
        return ConfidenceBand.MODERATE
    return ConfidenceBand.EMERGING
