"""
Tests for pattern and theme derivation.
"""

import pytest

from strata.core.derivation import (
    PATTERN_CATALOGUE,
    THEME_CATALOGUE,
    PatternDeriver,
    ThemeDeriver,
    priority_for,
    stability_index,
)
from strata.models.claim import Claim, ClaimPolarity
from strata.models.derived import Pattern, PatternCategory, ThemePriority

RULES = {rule.pattern_id: rule for rule in PATTERN_CATALOGUE}


def claim(claim_id: str, layers: tuple[int, ...], confidence: float = 0.71,
          polarity: ClaimPolarity = ClaimPolarity.STRENGTH) -> Claim:
    return Claim(
        claim_id=claim_id,
        user_id="user_1",
        layer_ids=layers,
        topic="+".join(f"L{l:02d}" for l in layers),
        polarity=polarity,
        confidence=confidence,
        extraction_confidence=confidence,
        supporting_signal_ids=(f"sig_{claim_id}",),
    )


def pattern(pattern_id: str, stability: float, layers: tuple[int, ...] = (1,)) -> Pattern:
    return Pattern(
        pattern_id=pattern_id,
        category=PatternCategory.INDIVIDUAL,
        name=pattern_id,
        one_liner="",
        layer_ids=layers,
        supporting_claim_ids=(),
        confidence=0.7,
        stability_index=stability,
    )


class TestPatternCatalogue:
    def test_ids_unique_and_prefixed(self):
        ids = [rule.pattern_id for rule in PATTERN_CATALOGUE]
        assert len(ids) == len(set(ids))
        for rule in PATTERN_CATALOGUE:
            prefix = "PAT.IND." if rule.category == PatternCategory.INDIVIDUAL else "PAT.REL."
            assert rule.pattern_id.startswith(prefix)

    def test_stability_anchor_layers(self):
        assert RULES["PAT.IND.STABILITY_ANCHOR"].eligible_layers == (1, 2)

    def test_themes_reference_known_patterns(self):
        for rule in THEME_CATALOGUE:
            for pattern_id in rule.detect_from_patterns:
                assert pattern_id in RULES


class TestPatternDeriver:
    """Tests for pattern promotion."""

    def test_two_supporting_claims_promote(self):
        """Test two strength claims on layers 1 and 2 promote Stability Anchor."""
        patterns = PatternDeriver().derive([claim("c1", (1,)), claim("c2", (2,))])

        assert [p.pattern_id for p in patterns] == ["PAT.IND.STABILITY_ANCHOR"]
        anchor = patterns[0]
        assert anchor.supporting_claim_ids == ("c1", "c2")
        assert anchor.layer_ids == (1, 2)
        assert anchor.confidence == pytest.approx(0.71)
        assert anchor.stability_index == pytest.approx(0.73)

    def test_single_claim_is_not_enough(self):
        assert PatternDeriver().derive([claim("c1", (1, 2))]) == []

    def test_polarity_filters(self):
        """Test friction claims feed friction patterns only."""
        claims = [
            claim("c1", (6,), polarity=ClaimPolarity.FRICTION),
            claim("c2", (8,), polarity=ClaimPolarity.FRICTION),
        ]
        ids = [p.pattern_id for p in PatternDeriver().derive(claims)]
        assert "PAT.IND.PRESSURE_CONTROLLER" in ids
        assert "PAT.IND.DRIVE_MAXIMIZER" not in ids
        assert "PAT.IND.STRUCTURED_PROCESSOR" not in ids

    def test_deterministic_and_sorted(self):
        """Test derivation is order-independent and idempotent."""
        claims = [
            claim("c3", (13,)),
            claim("c1", (1,)),
            claim("c2", (2, 14)),
            claim("c4", (5,)),
            claim("c5", (15,), polarity=ClaimPolarity.FRICTION),
        ]
        deriver = PatternDeriver()
        first = deriver.derive(claims)
        second = deriver.derive(list(reversed(claims)))

        assert first == second
        assert [p.pattern_id for p in first] == sorted(p.pattern_id for p in first)

    def test_empty_claims(self):
        assert PatternDeriver().derive([]) == []


class TestStabilityIndex:
    def test_full_evidence(self):
        rule = RULES["PAT.IND.STABILITY_ANCHOR"]
        claims = [claim(f"c{i}", (1 + i % 2,), confidence=1.0) for i in range(4)]
        assert stability_index(claims, rule) == 1.0

    def test_no_claims(self):
        assert stability_index([], RULES["PAT.IND.STABILITY_ANCHOR"]) == 0.0


class TestThemeDeriver:
    """Tests for theme synthesis."""

    def test_theme_needs_required_count(self):
        deriver = ThemeDeriver()
        assert deriver.derive([pattern("PAT.IND.STABILITY_ANCHOR", 0.7)]) == []

        themes = deriver.derive(
            [pattern("PAT.IND.STABILITY_ANCHOR", 0.7), pattern("PAT.IND.EXPLORER_MIND", 0.7, (3,))]
        )
        assert [t.theme_id for t in themes] == ["THM.STABILITY_VS_GROWTH"]
        assert themes[0].layer_ids == (1, 3)
        assert themes[0].priority == ThemePriority.HIGH

    def test_single_pattern_theme(self):
        themes = ThemeDeriver().derive([pattern("PAT.IND.DRIVE_MAXIMIZER", 0.3)])
        assert [t.theme_id for t in themes] == ["THM.ACHIEVEMENT_VS_BALANCE"]
        assert themes[0].priority == ThemePriority.LOW

    def test_high_priority_first(self):
        themes = ThemeDeriver().derive(
            [
                pattern("PAT.IND.DRIVE_MAXIMIZER", 0.45),
                pattern("PAT.IND.STRUCTURED_PROCESSOR", 0.8),
                pattern("PAT.IND.EXPLORER_MIND", 0.8),
            ]
        )
        assert [t.theme_id for t in themes] == [
            "THM.STRUCTURE_VS_EMERGENCE",
            "THM.ACHIEVEMENT_VS_BALANCE",
        ]

    @pytest.mark.parametrize(
        "stability,priority",
        [(0.6, ThemePriority.HIGH), (0.59, ThemePriority.MEDIUM), (0.4, ThemePriority.MEDIUM), (0.39, ThemePriority.LOW)],
    )
    def test_priority_bands(self, stability, priority):
        assert priority_for([pattern("PAT.X", stability)]) == priority
