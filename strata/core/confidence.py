"""
Confidence arithmetic for claims.

Pure functions. Every result is clamped to [0, max_confidence]. Extraction
confidence is rounded so the same support count always yields the same
value; resonance keeps full precision so long vote sequences keep moving
until they reach a bound.

    extraction:  c0 = min(max, base + weight * n)
    fits:        c += fits_rate * (1 - c)
    doesnt_fit:  c -= doesnt_fit_rate * c
    partial:     c unchanged
"""

from collections.abc import Iterable

from strata.config import ExtractionConfig, RecalibrationConfig
from strata.models.claim import Resonance

PRECISION = 6


def clamp(value: float, upper: float = 1.0) -> float:
    """Clamp to [0, upper]."""
    return min(max(value, 0.0), upper)


def extraction_confidence(support_count: int, config: ExtractionConfig) -> float:
    """
    Confidence carried by a set of distinct supporting signals.

    Args:
        support_count: Number of distinct supporting signal ids
        config: Extraction weights

    Returns:
        Confidence in [0, max_confidence], rounded to PRECISION digits
    """
    if support_count <= 0:
        return 0.0
    raw = config.base_confidence + config.per_signal_weight * support_count
    return round(clamp(raw, config.max_confidence), PRECISION)


def apply_resonance(
    confidence: float, resonance: Resonance, config: RecalibrationConfig
) -> float:
    """Apply one resonance vote."""
    if resonance == Resonance.FITS:
        return clamp(confidence + config.fits_rate * (1.0 - confidence))
    if resonance == Resonance.DOESNT_FIT:
        return clamp(confidence - config.doesnt_fit_rate * confidence)
    return clamp(confidence)


def replay_resonance(
    base_confidence: float, votes: Iterable[Resonance], config: RecalibrationConfig
) -> float:
    """
    Replay a resonance history on top of a base confidence.

    Used when a merge changes the extraction confidence of a claim that
    already received feedback.
    """
    confidence = clamp(base_confidence)
    for vote in votes:
        confidence = apply_resonance(confidence, vote, config)
    return confidence
