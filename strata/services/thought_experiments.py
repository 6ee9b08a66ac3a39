"""
Thought Experiment Service - introspective questions that refine one layer.

Question type follows the current confidence on the layer:
- below 0.6 (or no claim yet) -> depth: reach the driver underneath
- above 0.7 -> mirror: verify the current reading
- otherwise -> edge: probe growth or resistance

The type used most recently for the layer is avoided when another fits.
Answers become one-off signals merged through the extractor path.
"""

from datetime import UTC, datetime

from strata.core.taxonomy import LayerCluster, get_layer
from strata.models.claim import Claim
from strata.models.experiment import ExperimentType, ThoughtExperiment
from strata.models.signal import Signal, SignalSource
from strata.utils.exceptions import ValidationError
from strata.utils.id_generator import generate_experiment_id, generate_signal_id
from strata.utils.logger import get_logger

logger = get_logger(__name__)

DEPTH_BELOW = 0.6
MIRROR_ABOVE = 0.7

QUESTION_TEMPLATES: dict[LayerCluster, dict[ExperimentType, str]] = {
    LayerCluster.CORE: {
        ExperimentType.MIRROR: (
            "Your profile reads your {layer_name} as {band}. When you look at the last week, "
            "does that still feel accurate? What has shifted?"
        ),
        ExperimentType.EDGE: (
            "Think about the last week: when did your {layer_name} feel most alive, and when "
            "most drained? What does that say about where you draw from?"
        ),
        ExperimentType.DEPTH: (
            "If a close friend described your {layer_name} in one sentence, what would they "
            "say, and would you agree or push back?"
        ),
    },
    LayerCluster.PROCESSING: {
        ExperimentType.MIRROR: (
            "Before an important decision this week, what was the first thing you did? Does "
            "the pattern match a {band} reading of your {layer_name}?"
        ),
        ExperimentType.EDGE: (
            "Where does your {layer_name} hold you back right now, and where does it carry "
            "you further than you expected?"
        ),
        ExperimentType.DEPTH: (
            "Think of the last time your {layer_name} surprised you. What drove that, and "
            "what might your profile be missing?"
        ),
    },
    LayerCluster.EXPRESSION: {
        ExperimentType.MIRROR: (
            "Your {layer_name} reads as {band}. What is the last moment it showed up clearly, "
            "and how did it feel?"
        ),
        ExperimentType.EDGE: (
            "Do you express your {layer_name} more freely with structure or with freedom? Has "
            "that changed recently?"
        ),
        ExperimentType.DEPTH: (
            "When you are at your best, what does your {layer_name} look like on an ordinary "
            "day?"
        ),
    },
    LayerCluster.RELATIONAL: {
        ExperimentType.MIRROR: (
            "Think of your three closest relationships. Does your {layer_name} show up the "
            "same way in all of them?"
        ),
        ExperimentType.EDGE: (
            "When conflict arises, what is your instinct: fight, freeze, appease or solve? "
            "What does that reveal about your {layer_name}?"
        ),
        ExperimentType.DEPTH: (
            "Which relationship dynamic challenges your {layer_name} most right now, and "
            "what is underneath it?"
        ),
    },
    LayerCluster.GROWTH: {
        ExperimentType.MIRROR: (
            "Your {layer_name} reads as {band}. Where are you heading, and does it match "
            "where you want to be heading?"
        ),
        ExperimentType.EDGE: (
            "What belief about your {layer_name} did you hold a year ago that you no longer "
            "hold? What replaced it?"
        ),
        ExperimentType.DEPTH: (
            "If someone could see what you are becoming rather than what you are, what would "
            "they say about your {layer_name}?"
        ),
    },
}


def preferred_type(confidence: float | None) -> ExperimentType:
    if confidence is None or confidence < DEPTH_BELOW:
        return ExperimentType.DEPTH
    if confidence > MIRROR_ABOVE:
        return ExperimentType.MIRROR
    return ExperimentType.EDGE


class ThoughtExperimentService:
    """Generates questions and turns answers into signals."""

    def __init__(self, templates: dict[LayerCluster, dict[ExperimentType, str]] | None = None):
        self.templates = templates or QUESTION_TEMPLATES

    @staticmethod
    def strongest_claim(claims: list[Claim], layer_id: int, retirement_threshold: float) -> Claim | None:
        """Highest-confidence active claim touching the layer."""
        candidates = [
            c for c in claims if layer_id in c.layer_ids and not c.is_retired(retirement_threshold)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda c: (c.confidence, c.claim_id))

    def choose_type(
        self, confidence: float | None, recent_type: ExperimentType | None
    ) -> ExperimentType:
        """Preferred type unless it was just used; then the next one in mirror, edge, depth order."""
        preferred = preferred_type(confidence)
        if recent_type is None or preferred != recent_type:
            return preferred
        for alternative in ExperimentType:
            if alternative != recent_type:
                return alternative
        return preferred

    def generate(
        self,
        user_id: str,
        layer_id: int,
        claim: Claim | None,
        recent_type: ExperimentType | None = None,
        now: datetime | None = None,
    ) -> ThoughtExperiment:
        """
        Build a question targeting one layer.

        Args:
            user_id: User the question is for
            layer_id: Target layer (1-15)
            claim: Strongest current claim on the layer, if any
            recent_type: Type of the most recent question on the layer

        Raises:
            ValidationError: If the layer id is unknown
        """
        layer = get_layer(layer_id)
        confidence = claim.confidence if claim else None
        experiment_type = self.choose_type(confidence, recent_type)
        band = claim.band.value if claim else "not yet read"

        question = self.templates[layer.cluster][experiment_type].format(
            layer_name=layer.name.lower(), band=band
        )
        return ThoughtExperiment(
            experiment_id=generate_experiment_id(),
            user_id=user_id,
            layer_id=layer_id,
            experiment_type=experiment_type,
            question=question,
            context=layer.primary_focus,
            current_confidence=confidence,
            created_at=now or datetime.now(UTC),
        )

    def answer_to_signal(self, experiment: ThoughtExperiment, answer: str, now: datetime | None = None) -> Signal:
        """
        Convert an answer into a one-off signal on the experiment's layer.

        Raises:
            ValidationError: If the answer is blank
        """
        if not answer or not answer.strip():
            raise ValidationError(
                "Thought experiment answer is empty",
                context={"experiment_id": experiment.experiment_id, "user_id": experiment.user_id},
            )
        return Signal(
            signal_id=generate_signal_id(),
            user_id=experiment.user_id,
            question_id=experiment.experiment_id,
            layer_ids=(experiment.layer_id,),
            raw_value=answer,
            normalized_value=answer.strip().lower(),
            timestamp=now or datetime.now(UTC),
            source=SignalSource.THOUGHT_EXPERIMENT,
        )
