"""
Recalibration Engine - resonance feedback and drift tracking.

Feedback never rebuilds anything on its own: it produces a new claim state
with the adjusted claim and the accumulated drift. The caller decides,
through ``needs_cascade``, whether the drift warrants a synchronous
snapshot rebuild.

Two event sources move confidence:
1. Resonance votes (fits / partial / doesnt_fit)
2. Thought experiment answers, merged through the extractor path
"""

from collections.abc import Iterable
from datetime import UTC, datetime

from pydantic import BaseModel

from strata.config import RecalibrationConfig
from strata.core.confidence import apply_resonance
from strata.models.claim import Claim, Resonance, ResonanceEvent
from strata.models.snapshot import ClaimState
from strata.utils.exceptions import ValidationError
from strata.utils.id_generator import generate_feedback_id
from strata.utils.logger import get_logger

logger = get_logger(__name__)


class FeedbackOutcome(BaseModel):
    """Result of applying one vote to a claim state."""

    state: ClaimState
    claim: Claim
    event: ResonanceEvent

    @property
    def delta(self) -> float:
        return self.event.delta


def parse_resonance(value: Resonance | str) -> Resonance:
    """
    Coerce a resonance value.

    Raises:
        ValidationError: If the value is outside the enumeration
    """
    try:
        return Resonance(value)
    except ValueError as e:
        raise ValidationError(
            f"Unknown resonance: {value}",
            context={"resonance": str(value), "allowed": [r.value for r in Resonance]},
        ) from e


class RecalibrationEngine:
    """
    Applies feedback to claim states and tracks drift.

    Drift is the sum of absolute confidence changes since the last snapshot.
    """

    def __init__(self, config: RecalibrationConfig):
        """
        Initialize recalibration engine.

        Args:
            config: Feedback rates and thresholds
        """
        self.config = config

    def apply_feedback(
        self,
        state: ClaimState,
        claim_id: str,
        resonance: Resonance | str,
        context_tags: Iterable[str] = (),
        now: datetime | None = None,
    ) -> FeedbackOutcome:
        """
        Apply one resonance vote.

        Args:
            state: Current claim state of the user
            claim_id: Claim being voted on
            resonance: fits, partial or doesnt_fit
            context_tags: Free-form tags kept with the vote
            now: Vote timestamp

        Returns:
            FeedbackOutcome with the new state, adjusted claim and event

        Raises:
            ValidationError: Unknown claim id or resonance value
        """
        resonance = parse_resonance(resonance)
        claim = state.get_claim(claim_id)
        if claim is None:
            raise ValidationError(
                f"Unknown claim id: {claim_id}",
                context={"user_id": state.user_id, "claim_id": claim_id},
            )

        now = now or datetime.now(UTC)
        new_confidence = apply_resonance(claim.confidence, resonance, self.config)
        event = ResonanceEvent(
            feedback_id=generate_feedback_id(),
            resonance=resonance,
            context_tags=tuple(dict.fromkeys(t.strip() for t in context_tags if t.strip())),
            previous_confidence=claim.confidence,
            new_confidence=new_confidence,
            recorded_at=now,
        )
        updated = claim.model_copy(
            update={
                "confidence": new_confidence,
                "last_adjusted_at": now,
                "resonance_history": claim.resonance_history + (event,),
            }
        )

        new_state = state.model_copy(
            update={
                "claims": state.replace_claim(updated),
                "drift_since_snapshot": self.add_drift(state.drift_since_snapshot, [event.delta]),
            }
        )

        logger.debug(
            f"Feedback {resonance.value} on {claim_id}: "
            f"{claim.confidence:.4f} -> {new_confidence:.4f}",
            extra={"user_id": state.user_id, "claim_id": claim_id},
        )
        return FeedbackOutcome(state=new_state, claim=updated, event=event)

    @staticmethod
    def add_drift(current: float, deltas: Iterable[float]) -> float:
        return round(current + sum(abs(d) for d in deltas), 6)

    def needs_cascade(self, drift: float) -> bool:
        return drift > self.config.drift_threshold

    def is_material(self, delta: float) -> bool:
        """Whether a change invalidates cached compatibility scores."""
        return abs(delta) > self.config.material_change_threshold
