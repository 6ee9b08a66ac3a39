"""
Tests for RecalibrationEngine.
"""

import pytest

from strata.config import RecalibrationConfig
from strata.models.claim import Claim, Resonance
from strata.models.snapshot import ClaimState
from strata.services.recalibration import RecalibrationEngine, parse_resonance
from strata.utils.exceptions import ValidationError


@pytest.fixture
def engine() -> RecalibrationEngine:
    return RecalibrationEngine(RecalibrationConfig())


@pytest.fixture
def state() -> ClaimState:
    claims = tuple(
        Claim(
            claim_id=claim_id,
            user_id="user_1",
            layer_ids=(layer,),
            topic=f"L{layer:02d}",
            confidence=confidence,
            extraction_confidence=confidence,
        )
        for claim_id, layer, confidence in (("c1", 1, 0.9), ("c2", 2, 0.71))
    )
    return ClaimState(user_id="user_1", version=3, claims=claims)


@pytest.mark.unit
class TestApplyFeedback:
    """Tests for single resonance votes."""

    def test_doesnt_fit(self, engine, state):
        outcome = engine.apply_feedback(state, "c1", Resonance.DOESNT_FIT, ["work"])

        assert outcome.claim.confidence == pytest.approx(0.765)
        assert outcome.event.previous_confidence == 0.9
        assert outcome.event.context_tags == ("work",)
        assert outcome.delta == pytest.approx(-0.135)
        assert outcome.state.drift_since_snapshot == pytest.approx(0.135)
        assert outcome.state.get_claim("c1").resonance_history == (outcome.event,)
        # The other claim and the stored version are untouched
        assert outcome.state.get_claim("c2") == state.get_claim("c2")
        assert outcome.state.version == 3

    def test_string_resonance(self, engine, state):
        outcome = engine.apply_feedback(state, "c2", "fits")
        assert outcome.claim.confidence == pytest.approx(0.7332)

    def test_partial_keeps_confidence_but_records_vote(self, engine, state):
        outcome = engine.apply_feedback(state, "c2", Resonance.PARTIAL)
        assert outcome.claim.confidence == 0.71
        assert len(outcome.claim.resonance_history) == 1
        assert outcome.state.drift_since_snapshot == 0.0

    def test_drift_accumulates(self, engine, state):
        first = engine.apply_feedback(state, "c1", Resonance.DOESNT_FIT)
        second = engine.apply_feedback(first.state, "c2", Resonance.DOESNT_FIT)
        assert second.state.drift_since_snapshot == pytest.approx(0.135 + 0.1065)

    def test_unknown_claim(self, engine, state):
        with pytest.raises(ValidationError) as exc_info:
            engine.apply_feedback(state, "c_missing", Resonance.FITS)
        assert exc_info.value.context["claim_id"] == "c_missing"

    def test_unknown_resonance(self, engine, state):
        with pytest.raises(ValidationError):
            engine.apply_feedback(state, "c1", "love_it")

    def test_blank_tags_dropped(self, engine, state):
        outcome = engine.apply_feedback(state, "c1", Resonance.FITS, [" home ", "", "home"])
        assert outcome.event.context_tags == ("home",)


@pytest.mark.unit
class TestThresholds:
    def test_needs_cascade_strictly_above(self, engine):
        assert not engine.needs_cascade(0.25)
        assert engine.needs_cascade(0.2501)

    def test_is_material(self, engine):
        assert not engine.is_material(0.05)
        assert engine.is_material(-0.06)

    def test_add_drift_uses_absolute_values(self):
        assert RecalibrationEngine.add_drift(0.1, [-0.05, 0.02]) == pytest.approx(0.17)

    def test_parse_resonance(self):
        assert parse_resonance("doesnt_fit") == Resonance.DOESNT_FIT
