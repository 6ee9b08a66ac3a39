"""
Theme derivation - polarity tensions synthesized from patterns.
"""

from pydantic import BaseModel

from strata.models.derived import Pattern, Theme, ThemePriority


class ThemeRule(BaseModel):
    """Catalogue entry: a theme appears when enough of its patterns do."""

    model_config = {"frozen": True}

    theme_id: str
    name: str
    summary: str
    detect_from_patterns: tuple[str, ...]
    required_pattern_count: int


THEME_CATALOGUE: tuple[ThemeRule, ...] = (
    ThemeRule(
        theme_id="THM.CONTROL_VS_TRUST",
        name="Control ↔ Trust",
        summary="A recurring tension between controlling outcomes and trusting emergence",
        detect_from_patterns=(
            "PAT.IND.PRESSURE_CONTROLLER",
            "PAT.IND.STRUCTURED_PROCESSOR",
            "PAT.IND.INITIATOR_STANCE",
        ),
        required_pattern_count=2,
    ),
    ThemeRule(
        theme_id="THM.ACHIEVEMENT_VS_BALANCE",
        name="Achievement ↔ Balance",
        summary="A recurring tension between driving toward goals and sustaining equilibrium",
        detect_from_patterns=("PAT.IND.DRIVE_MAXIMIZER", "PAT.IND.PRESSURE_CONTROLLER"),
        required_pattern_count=1,
    ),
    ThemeRule(
        theme_id="THM.CONNECTION_VS_AUTONOMY",
        name="Connection ↔ Autonomy",
        summary="A recurring tension between deep connection and protected independence",
        detect_from_patterns=(
            "PAT.IND.RELATIONAL_WARMTH",
            "PAT.IND.BOUNDARY_CLARITY",
            "PAT.REL.BOUNDARY_TENSION",
        ),
        required_pattern_count=2,
    ),
    ThemeRule(
        theme_id="THM.STABILITY_VS_GROWTH",
        name="Stability ↔ Growth",
        summary="A recurring tension between maintaining stability and pursuing development",
        detect_from_patterns=(
            "PAT.IND.STABILITY_ANCHOR",
            "PAT.IND.EXPLORER_MIND",
            "PAT.IND.GROWTH_EDGE_ACTIVE",
        ),
        required_pattern_count=2,
    ),
    ThemeRule(
        theme_id="THM.EXPRESSION_VS_PROTECTION",
        name="Expression ↔ Protection",
        summary="A recurring tension between showing up fully and protecting capacity",
        detect_from_patterns=(
            "PAT.IND.PRESSURE_WITHDRAWAL",
            "PAT.IND.BOUNDARY_POROSITY",
            "PAT.IND.EMOTIONAL_ATTUNEMENT",
        ),
        required_pattern_count=2,
    ),
    ThemeRule(
        theme_id="THM.STRUCTURE_VS_EMERGENCE",
        name="Structure ↔ Emergence",
        summary="A recurring tension between planning and allowing things to unfold",
        detect_from_patterns=("PAT.IND.STRUCTURED_PROCESSOR", "PAT.IND.EXPLORER_MIND"),
        required_pattern_count=2,
    ),
)

_PRIORITY_ORDER = {ThemePriority.HIGH: 0, ThemePriority.MEDIUM: 1, ThemePriority.LOW: 2}


def priority_for(patterns: list[Pattern]) -> ThemePriority:
    """Priority from the average stability of supporting patterns."""
    avg_stability = sum(p.stability_index for p in patterns) / len(patterns)
    if avg_stability >= 0.6:
        return ThemePriority.HIGH
    if avg_stability >= 0.4:
        return ThemePriority.MEDIUM
    return ThemePriority.LOW


class ThemeDeriver:
    """Detect themes from a derived pattern set."""

    def __init__(self, catalogue: tuple[ThemeRule, ...] = THEME_CATALOGUE):
        self.catalogue = catalogue

    def derive(self, patterns: list[Pattern]) -> list[Theme]:
        """
        Derive themes.

        Returns:
            Themes ordered high priority first, then by theme_id
        """
        by_id = {p.pattern_id: p for p in patterns}
        themes: list[Theme] = []

        for rule in self.catalogue:
            matching = [by_id[pid] for pid in sorted(rule.detect_from_patterns) if pid in by_id]
            if not matching or len(matching) < rule.required_pattern_count:
                continue

            layer_ids = sorted({layer for p in matching for layer in p.layer_ids})
            themes.append(
                Theme(
                    theme_id=rule.theme_id,
                    name=rule.name,
                    summary=rule.summary,
                    layer_ids=tuple(layer_ids),
                    supporting_pattern_ids=tuple(p.pattern_id for p in matching),
                    priority=priority_for(matching),
                )
            )

        return sorted(themes, key=lambda t: (_PRIORITY_ORDER[t.priority], t.theme_id))
