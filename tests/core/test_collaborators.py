"""
Tests for the default collaborator implementations.
"""

import pytest

from strata.core.collaborators import (
    DEEP_ANALYSIS_FEATURE,
    StaticEntitlementGate,
    StaticIdentityResolver,
    TemplateSummarizer,
)
from strata.models.claim import Claim, ClaimPolarity
from strata.models.relational import DeepAnalysis


@pytest.mark.asyncio
class TestTemplateSummarizer:
    async def test_describe_claim(self):
        claim = Claim(
            claim_id="c1",
            user_id="u",
            layer_ids=(6, 8),
            topic="L06+L08",
            polarity=ClaimPolarity.FRICTION,
            confidence=0.71,
            extraction_confidence=0.71,
        )

        statement = await TemplateSummarizer().describe_claim(claim)

        assert statement.startswith("Stress & Pressure Patterns and Behavioural Rhythm & Execution")
        assert "friction" in statement
        assert "(developed)" in statement

    async def test_narrate_pair(self):
        analysis = DeepAnalysis(
            user_a="a", user_b="b", allowed=True, base_score=64.2,
            friction_layer_ids=[6], complementary_layer_ids=[10],
        )

        narrative = await TemplateSummarizer().narrate_pair(analysis)

        assert narrative.startswith("Base compatibility 64/100.")
        assert "Friction around Stress & Pressure Patterns." in narrative
        assert "Complementary in Relational Energy & Boundaries." in narrative


@pytest.mark.asyncio
class TestStaticCollaborators:
    async def test_gate_returns_fixed_decision(self):
        gate = StaticEntitlementGate(allowed=False, reason="no_credits", credits_required=3)
        decision = await gate.can_generate("u", DEEP_ANALYSIS_FEATURE)
        assert not decision.allowed
        assert decision.credits_required == 3

    async def test_resolver_omits_unknown(self):
        resolver = StaticIdentityResolver({"a": "Ana"})
        assert await resolver.resolve(["a", "b"]) == {"a": "Ana"}
