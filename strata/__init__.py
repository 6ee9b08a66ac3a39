"""
Strata - layered personality profile derivation.

Turns user signals into confidence-scored claims, derives patterns and
themes from them, keeps versioned snapshots and compares profiles.
"""

from strata.config import Config
from strata.services.profile_engine import ProfileEngine

__version__ = "0.1.0"

__all__ = ["Config", "ProfileEngine"]
