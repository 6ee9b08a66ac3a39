"""
ID generation utilities for Strata.

Provides consistent ID generation for all entity types:
- Signals: sig_xxx
- Claims: clm_Lnn_xxx (prefixed with the claim's lowest layer)
- Snapshots: snap_xxx
- Feedback events: fb_xxx
- Thought experiments: te_xxx
"""

import hashlib
from uuid import uuid4


def generate_signal_id() -> str:
    """
    Generate unique Signal ID.

    Returns:
        ID in format "sig_xxx" where xxx is 12 hex characters
    """
    return f"sig_{uuid4().hex[:12]}"


def generate_claim_id(layer_id: int) -> str:
    """
    Generate Claim ID anchored on a layer.

    Args:
        layer_id: Lowest layer the claim is attached to

    Returns:
        ID in format "clm_Lnn_xxx"
    """
    return f"clm_L{layer_id:02d}_{uuid4().hex[:12]}"


def generate_snapshot_id() -> str:
    """
    Generate unique Snapshot ID.

    Returns:
        ID in format "snap_xxx" where xxx is 12 hex characters
    """
    return f"snap_{uuid4().hex[:12]}"


def generate_feedback_id() -> str:
    """
    Generate unique feedback event ID.

    Returns:
        ID in format "fb_xxx" where xxx is 12 hex characters
    """
    return f"fb_{uuid4().hex[:12]}"


def generate_experiment_id() -> str:
    """
    Generate unique thought experiment ID.

    Returns:
        ID in format "te_xxx" where xxx is 12 hex characters
    """
    return f"te_{uuid4().hex[:12]}"


def member_set_hash(user_ids: list[str]) -> str:
    """
    Stable hash of a team's member set, independent of order and duplicates.

    Args:
        user_ids: Member user IDs

    Returns:
        16 hex characters of the SHA256 over the sorted unique ids
    """
    joined = "|".join(sorted(set(user_ids)))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]
