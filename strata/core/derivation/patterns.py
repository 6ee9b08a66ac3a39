"""
Pattern derivation.

A pattern is promoted when at least ``min_supporting_claims`` active claims
touch the rule's eligible layers with an accepted polarity. Derivation is
a pure function of the claim set: output is sorted and carries no
timestamps, so recomputing over the same claims is structurally equal.
"""

from pydantic import BaseModel

from strata.models.claim import Claim, ClaimPolarity
from strata.models.derived import Pattern, PatternCategory

_POSITIVE = frozenset({ClaimPolarity.STRENGTH, ClaimPolarity.NEUTRAL})
_FRICTION = frozenset({ClaimPolarity.FRICTION})


class PatternRule(BaseModel):
    """Catalogue entry describing when a pattern is present."""

    model_config = {"frozen": True}

    pattern_id: str
    category: PatternCategory
    name: str
    one_liner: str
    eligible_layers: tuple[int, ...]
    polarities: frozenset[ClaimPolarity] = _POSITIVE
    growth_edges: tuple[str, ...] = ()
    min_supporting_claims: int = 2

    def supports(self, claim: Claim) -> bool:
        if claim.polarity not in self.polarities:
            return False
        return bool(set(claim.layer_ids) & set(self.eligible_layers))

    def covered_layers(self, claims: list[Claim]) -> set[int]:
        eligible = set(self.eligible_layers)
        return {layer for claim in claims for layer in claim.layer_ids if layer in eligible}


PATTERN_CATALOGUE: tuple[PatternRule, ...] = (
    PatternRule(
        pattern_id="PAT.IND.STABILITY_ANCHOR",
        category=PatternCategory.INDIVIDUAL,
        name="Stability Anchor",
        one_liner="You naturally create groundedness for yourself and others",
        eligible_layers=(1, 2),
        growth_edges=("Notice when stability becomes rigidity", "Explore safe instability"),
    ),
    PatternRule(
        pattern_id="PAT.IND.EXPLORER_MIND",
        category=PatternCategory.INDIVIDUAL,
        name="Explorer Mind",
        one_liner="You seek novelty and possibility before settling on a path",
        eligible_layers=(1, 3, 14),
        growth_edges=(
            "Ground exploration with commitment windows",
            "Notice when exploration avoids completion",
        ),
    ),
    PatternRule(
        pattern_id="PAT.IND.STRUCTURED_PROCESSOR",
        category=PatternCategory.INDIVIDUAL,
        name="Structured Processor",
        one_liner="You organize information systematically before acting",
        eligible_layers=(3, 4, 8),
        growth_edges=("Trust incomplete data sometimes", "Balance structure with spontaneous action"),
    ),
    PatternRule(
        pattern_id="PAT.IND.DRIVE_MAXIMIZER",
        category=PatternCategory.INDIVIDUAL,
        name="Drive Maximizer",
        one_liner="You push toward goals with sustained intensity",
        eligible_layers=(5, 8),
        growth_edges=("Build recovery into achievement cycles", "Separate self-worth from output"),
    ),
    PatternRule(
        pattern_id="PAT.IND.PRESSURE_CONTROLLER",
        category=PatternCategory.INDIVIDUAL,
        name="Pressure Controller",
        one_liner="Under stress, you instinctively reach for structure and control",
        eligible_layers=(6, 8),
        polarities=_FRICTION,
        growth_edges=("Practice deliberate release", "Recognize control as anxiety signal"),
    ),
    PatternRule(
        pattern_id="PAT.IND.PRESSURE_WITHDRAWAL",
        category=PatternCategory.INDIVIDUAL,
        name="Pressure Withdrawal",
        one_liner="Under stress, you naturally withdraw to protect capacity",
        eligible_layers=(6, 7, 10),
        polarities=_FRICTION,
        growth_edges=("Signal withdrawal intent to others", "Build re-emergence rituals"),
    ),
    PatternRule(
        pattern_id="PAT.IND.EMOTIONAL_ATTUNEMENT",
        category=PatternCategory.INDIVIDUAL,
        name="Emotional Attunement",
        one_liner="You read and name emotional undercurrents as you communicate",
        eligible_layers=(7, 9),
        growth_edges=("Separate noticing from fixing", "Let others name their own states"),
    ),
    PatternRule(
        pattern_id="PAT.IND.BOUNDARY_CLARITY",
        category=PatternCategory.INDIVIDUAL,
        name="Boundary Clarity",
        one_liner="You maintain clear definition between yourself and others",
        eligible_layers=(10,),
        polarities=frozenset({ClaimPolarity.STRENGTH}),
        growth_edges=("Allow appropriate permeability", "Notice when clarity feels cold"),
    ),
    PatternRule(
        pattern_id="PAT.IND.BOUNDARY_POROSITY",
        category=PatternCategory.INDIVIDUAL,
        name="Boundary Porosity",
        one_liner="You absorb others' states more readily than you realize",
        eligible_layers=(10,),
        polarities=_FRICTION,
        growth_edges=("Practice distinguishing self from other", "Create energetic reset rituals"),
    ),
    PatternRule(
        pattern_id="PAT.IND.INITIATOR_STANCE",
        category=PatternCategory.INDIVIDUAL,
        name="Initiator Stance",
        one_liner="You naturally start conversations, propose directions, move things forward",
        eligible_layers=(8, 12),
        polarities=frozenset({ClaimPolarity.STRENGTH}),
        growth_edges=("Create space for others to lead", "Notice initiating as control pattern"),
    ),
    PatternRule(
        pattern_id="PAT.IND.IDENTITY_ANCHOR",
        category=PatternCategory.INDIVIDUAL,
        name="Identity Anchor",
        one_liner="What drives you and who you are point the same way",
        eligible_layers=(5, 13),
        growth_edges=("Hold identity loosely under change", "Revisit drivers at each life stage"),
    ),
    PatternRule(
        pattern_id="PAT.IND.GROWTH_EDGE_ACTIVE",
        category=PatternCategory.INDIVIDUAL,
        name="Active Growth Edge",
        one_liner="You have a live development frontier you're aware of",
        eligible_layers=(13, 14, 15),
        polarities=frozenset(ClaimPolarity),
        growth_edges=("Pace the edge work", "Celebrate incremental shifts"),
    ),
    PatternRule(
        pattern_id="PAT.IND.RELATIONAL_WARMTH",
        category=PatternCategory.INDIVIDUAL,
        name="Relational Warmth",
        one_liner="Connection and care are central to how you operate",
        eligible_layers=(1, 10, 11),
        growth_edges=("Protect capacity to give", "Notice when warmth depletes you"),
    ),
    PatternRule(
        pattern_id="PAT.REL.BOUNDARY_TENSION",
        category=PatternCategory.RELATIONAL,
        name="Boundary Tension",
        one_liner="Closeness and distance are renegotiated often in your key relationships",
        eligible_layers=(10, 11),
        polarities=_FRICTION,
        growth_edges=("Name the distance you need before taking it", "Repair after ruptures"),
    ),
    PatternRule(
        pattern_id="PAT.REL.INFLUENCE_ORIENTATION",
        category=PatternCategory.RELATIONAL,
        name="Influence Orientation",
        one_liner="You shape groups through how you frame and carry conversations",
        eligible_layers=(9, 12),
        growth_edges=("Invite dissent early", "Notice when framing becomes steering"),
    ),
)


def stability_index(claims: list[Claim], rule: PatternRule) -> float:
    """
    Evidence strength of a pattern in [0, 1].

    Weighted blend of claim count against the rule minimum, spread across
    the eligible layers, and average claim confidence.
    """
    if not claims:
        return 0.0
    count_factor = min(len(claims) / (rule.min_supporting_claims * 2), 1.0)
    spread_factor = len(rule.covered_layers(claims)) / len(rule.eligible_layers)
    avg_confidence = sum(c.confidence for c in claims) / len(claims)
    return round(count_factor * 0.3 + spread_factor * 0.3 + avg_confidence * 0.4, 2)


class PatternDeriver:
    """Promote catalogue patterns from a set of active claims."""

    def __init__(self, catalogue: tuple[PatternRule, ...] = PATTERN_CATALOGUE):
        self.catalogue = catalogue

    def derive(self, claims: list[Claim]) -> list[Pattern]:
        """
        Derive patterns from claims.

        Args:
            claims: Active (non-retired) claims of one user

        Returns:
            Patterns sorted by pattern_id
        """
        patterns: list[Pattern] = []
        for rule in self.catalogue:
            supporting = sorted(
                (c for c in claims if rule.supports(c)), key=lambda c: c.claim_id
            )
            if len(supporting) < rule.min_supporting_claims:
                continue
            confidence = round(sum(c.confidence for c in supporting) / len(supporting), 4)
            patterns.append(
                Pattern(
                    pattern_id=rule.pattern_id,
                    category=rule.category,
                    name=rule.name,
                    one_liner=rule.one_liner,
                    layer_ids=tuple(sorted(rule.covered_layers(supporting))),
                    supporting_claim_ids=tuple(c.claim_id for c in supporting),
                    growth_edges=rule.growth_edges,
                    confidence=confidence,
                    stability_index=stability_index(supporting, rule),
                )
            )
        return sorted(patterns, key=lambda p: p.pattern_id)
