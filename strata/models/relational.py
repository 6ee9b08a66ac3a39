"""
Relational models - compatibility scores, team matrices and dynamics.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from strata.core.taxonomy import RelationshipType


def pair_key(user_a: str, user_b: str) -> tuple[str, str]:
    """Canonical key for an unordered user pair."""
    return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


class ClaimPair(BaseModel):
    """Two claims (one per user) that share at least one layer."""

    model_config = {"frozen": True}

    claim_a: str
    claim_b: str
    shared_layer_ids: tuple[int, ...]
    weight: float


class CompatibilityScore(BaseModel):
    """
    Pairwise compatibility, shared by both users.

    ``user_a``/``user_b`` are always in canonical (sorted) order.
    """

    model_config = {"frozen": True}

    user_a: str
    user_b: str
    score: float = Field(..., ge=0.0, le=100.0)
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    basis: tuple[ClaimPair, ...] = ()
    shared_layer_ids: tuple[int, ...] = ()
    snapshot_ids: tuple[str, ...] = Field(
        default=(), description="Snapshots of user_a and user_b the score was computed from"
    )

    @property
    def key(self) -> tuple[str, str]:
        return pair_key(self.user_a, self.user_b)

    def is_based_on(self, snapshot_a: str, snapshot_b: str) -> bool:
        return self.snapshot_ids == (snapshot_a, snapshot_b)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user_a, self.user_b)

    def is_stale(self, now: datetime, freshness_days: int) -> bool:
        return now - self.calculated_at > timedelta(days=freshness_days)


class InsufficientData(BaseModel):
    """Normal empty result: not enough evidence to score a pair."""

    model_config = {"frozen": True}

    user_a: str
    user_b: str
    reason: str
    missing_user_ids: tuple[str, ...] = ()


class TeamMember(BaseModel):
    """A member of a team, as supplied by the caller."""

    user_id: str
    name: str | None = None
    role: str | None = None


class PairStatus(str, Enum):
    """Outcome of one pair inside a team matrix."""

    SCORED = "scored"
    INSUFFICIENT_DATA = "insufficient_data"
    ERROR = "error"


class MatrixCell(BaseModel):
    """One unordered member pair in a compatibility matrix."""

    user_a: str
    user_b: str
    status: PairStatus
    score: float | None = None
    shared_layer_ids: tuple[int, ...] = ()
    error: dict[str, Any] | None = None


class MatrixStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"


class CompatibilityMatrix(BaseModel):
    """Pairwise scores across all C(n, 2) member pairs."""

    team_id: str
    member_ids: list[str]
    cells: list[MatrixCell] = Field(default_factory=list)
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def errors(self) -> list[MatrixCell]:
        return [c for c in self.cells if c.status == PairStatus.ERROR]

    @property
    def scored(self) -> list[MatrixCell]:
        return [c for c in self.cells if c.status == PairStatus.SCORED]

    @property
    def status(self) -> MatrixStatus:
        return MatrixStatus.PARTIAL if self.errors else MatrixStatus.COMPLETE

    def get(self, user_a: str, user_b: str) -> MatrixCell | None:
        key = pair_key(user_a, user_b)
        for cell in self.cells:
            if pair_key(cell.user_a, cell.user_b) == key:
                return cell
        return None

    def average_score(self) -> float | None:
        scores = [c.score for c in self.scored if c.score is not None]
        if not scores:
            return None
        return round(sum(scores) / len(scores), 2)


class CollectiveStrength(BaseModel):
    """A pattern shared by a large share of the team."""

    pattern_id: str
    name: str
    contributing_members: list[str]
    prevalence: float = Field(..., ge=0.0, le=1.0)


class GapSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PotentialGap(BaseModel):
    """A layer where many members show friction."""

    layer_id: int
    area: str
    prevalence: float = Field(..., ge=0.0, le=1.0)
    severity: GapSeverity


class MemberContribution(BaseModel):
    """What one member adds to the team."""

    user_id: str
    display_name: str | None = None
    unique_pattern_ids: list[str] = Field(default_factory=list)
    supporting_layer_ids: list[int] = Field(default_factory=list)


class TeamDynamicsProfile(BaseModel):
    """Aggregate view of a team's latest snapshots. Ephemeral."""

    team_id: str
    member_set_hash: str
    members: list[TeamMember]
    members_without_data: list[str] = Field(default_factory=list)
    aggregated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    collective_strengths: list[CollectiveStrength] = Field(default_factory=list)
    potential_gaps: list[PotentialGap] = Field(default_factory=list)
    member_contributions: list[MemberContribution] = Field(default_factory=list)
    dominant_pattern_ids: list[str] = Field(default_factory=list)
    cohesion_score: float = Field(..., ge=0.0, le=100.0)
    diversity_score: float = Field(..., ge=0.0, le=100.0)
    balance_score: float = Field(..., ge=0.0, le=100.0)


class EntitlementDecision(BaseModel):
    """Answer of the external credit/entitlement gate."""

    allowed: bool
    reason: str | None = None
    credits_required: int | None = None


class LensScore(BaseModel):
    """Compatibility read through one relationship lens."""

    relationship_type: RelationshipType
    score: float = Field(..., ge=0.0, le=100.0)


class DeepAnalysis(BaseModel):
    """Structured premium analysis of a pair."""

    user_a: str
    user_b: str
    allowed: bool
    reason: str | None = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    base_score: float | None = None
    shared_pattern_ids: list[str] = Field(default_factory=list)
    shared_theme_ids: list[str] = Field(default_factory=list)
    friction_layer_ids: list[int] = Field(default_factory=list)
    complementary_layer_ids: list[int] = Field(default_factory=list)
    lens_scores: list[LensScore] = Field(default_factory=list)
    narrative: str = ""
