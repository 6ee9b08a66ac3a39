"""
Tests for ClaimExtractor.

Tests batch validation, layer-signature grouping, confidence from
distinct signals, polarity classification and relational connectors.
"""

import pytest

from strata.config import ExtractionConfig
from strata.core.taxonomy import RelationshipType
from strata.models.claim import ClaimPolarity
from strata.models.signal import ExtractionOptions, SignalSource
from strata.services.claim_extractor import (
    ClaimExtractor,
    KeywordPolarityClassifier,
    layer_topic,
    parse_signals,
)
from strata.utils.exceptions import ValidationError


@pytest.fixture
def extractor() -> ClaimExtractor:
    return ClaimExtractor(ExtractionConfig())


@pytest.mark.unit
class TestExtraction:
    """Tests for claim extraction."""

    def test_three_signals_on_one_layer(self, extractor, signal_factory):
        """Test three signals on layer 2 give one non-emerging claim at 0.71."""
        signals = [signal_factory("user_1", (2,)) for _ in range(3)]

        claims = extractor.extract("user_1", signals, SignalSource.ONBOARDING)

        assert len(claims) == 1
        claim = claims[0]
        assert claim.layer_ids == (2,)
        assert claim.topic == "L02"
        assert claim.confidence == pytest.approx(0.71)
        assert claim.extraction_confidence == claim.confidence
        assert not claim.is_emerging(0.5)
        assert claim.claim_id.startswith("clm_L02_")
        assert set(claim.supporting_signal_ids) == {s.signal_id for s in signals}

    def test_single_signal_is_emerging(self, extractor, signal_factory):
        claims = extractor.extract("user_1", [signal_factory("user_1", (7,))], "voice")
        assert claims[0].confidence == pytest.approx(0.47)
        assert claims[0].is_emerging(0.5)

    def test_grouped_by_layer_signature(self, extractor, signal_factory):
        """Test multi-layer signals form their own group regardless of order."""
        signals = [
            signal_factory("user_1", (1, 2)),
            signal_factory("user_1", (2, 1)),
            signal_factory("user_1", (1,)),
        ]

        claims = extractor.extract("user_1", signals, SignalSource.ONBOARDING)

        assert [c.topic for c in claims] == ["L01", "L01+L02"]
        assert claims[1].support_count == 2

    def test_duplicate_signal_ids_count_once(self, extractor, signal_factory):
        signals = [signal_factory("user_1", (4,), signal_id="sig_dup") for _ in range(3)]

        claims = extractor.extract("user_1", signals, SignalSource.ONBOARDING)

        assert claims[0].supporting_signal_ids == ("sig_dup",)
        assert claims[0].confidence == pytest.approx(0.47)

    def test_polarity_from_signal_text(self, extractor, signal_factory):
        signals = [
            signal_factory("user_1", (6,), "under pressure I withdraw"),
            signal_factory("user_1", (6,), "it is difficult and I struggle"),
            signal_factory("user_1", (3,), "curious and focused"),
        ]

        claims = {c.topic: c for c in extractor.extract("user_1", signals, "onboarding")}

        assert claims["L06"].polarity == ClaimPolarity.FRICTION
        assert claims["L03"].polarity == ClaimPolarity.STRENGTH


@pytest.mark.unit
class TestValidation:
    """Tests for whole-batch rejection."""

    def test_empty_batch(self, extractor):
        with pytest.raises(ValidationError):
            extractor.extract("user_1", [], SignalSource.ONBOARDING)

    def test_unknown_source(self, extractor, signal_factory):
        with pytest.raises(ValidationError) as exc_info:
            extractor.extract("user_1", [signal_factory("user_1", (1,))], "carrier_pigeon")
        assert exc_info.value.context["source"] == "carrier_pigeon"

    def test_foreign_user(self, extractor, signal_factory):
        with pytest.raises(ValidationError):
            extractor.extract("user_1", [signal_factory("user_2", (1,))], SignalSource.ONBOARDING)

    def test_missing_layers(self, extractor, signal_factory):
        with pytest.raises(ValidationError):
            extractor.extract("user_1", [signal_factory("user_1", ())], SignalSource.ONBOARDING)

    def test_unknown_layer_rejects_whole_batch(self, extractor, signal_factory):
        signals = [signal_factory("user_1", (1,)), signal_factory("user_1", (16,))]
        with pytest.raises(ValidationError) as exc_info:
            extractor.extract("user_1", signals, SignalSource.ONBOARDING)
        assert exc_info.value.context["layer_ids"] == [16]

    def test_parse_signals_wraps_model_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_signals([{"signal_id": "sig_1", "user_id": "user_1"}])
        assert exc_info.value.context["index"] == 0
        assert exc_info.value.context["errors"]

    def test_parse_signals_accepts_dicts(self):
        parsed = parse_signals(
            [
                {
                    "signal_id": "sig_1",
                    "user_id": "user_1",
                    "question_id": "q1",
                    "layer_ids": [1, 2],
                    "raw_value": "calm",
                    "source": "voice",
                }
            ]
        )
        assert parsed[0].layer_ids == (1, 2)
        assert parsed[0].source == SignalSource.VOICE


@pytest.mark.unit
class TestRelationalConnectors:
    def test_disabled_by_default(self, extractor):
        assert extractor.relational_contexts((10,), ExtractionOptions()) == ()

    def test_lenses_covering_layer(self, extractor):
        contexts = extractor.relational_contexts(
            (8,), ExtractionOptions(include_relational_connectors=True)
        )
        assert contexts == (RelationshipType.COLLEAGUE_TEAM,)

    def test_focus_filter(self, extractor):
        options = ExtractionOptions(
            include_relational_connectors=True,
            focus_relationship_types=[RelationshipType.FRIEND],
        )
        assert extractor.relational_contexts((10, 7), options) == (RelationshipType.FRIEND,)


@pytest.mark.unit
class TestHelpers:
    def test_layer_topic(self):
        assert layer_topic((1, 12)) == "L01+L12"

    def test_classifier_tie_is_neutral(self, signal_factory):
        classifier = KeywordPolarityClassifier()
        signals = [
            signal_factory("user_1", (1,), "steady"),
            signal_factory("user_1", (1,), "pressure"),
        ]
        assert classifier.classify(signals) == ClaimPolarity.NEUTRAL

    def test_mixed_signal_does_not_vote(self, signal_factory):
        classifier = KeywordPolarityClassifier()
        assert classifier.classify([signal_factory("user_1", (1,), "calm under pressure")]) == ClaimPolarity.NEUTRAL
