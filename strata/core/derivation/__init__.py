"""
Deterministic derivation of patterns and themes from claim sets.
"""

from strata.core.derivation.patterns import (
    PATTERN_CATALOGUE,
    PatternDeriver,
    PatternRule,
    stability_index,
)
from strata.core.derivation.themes import THEME_CATALOGUE, ThemeDeriver, ThemeRule, priority_for

__all__ = [
    "PATTERN_CATALOGUE",
    "PatternDeriver",
    "PatternRule",
    "stability_index",
    "THEME_CATALOGUE",
    "ThemeDeriver",
    "ThemeRule",
    "priority_for",
]
