"""
Claim Extractor - turns a batch of signals into candidate claims.

Signals are grouped by layer signature (the sorted set of layers they were
tagged against). Each group yields one claim whose confidence grows with
the number of distinct supporting signals. Extraction is pure: nothing is
persisted and merge with prior claims happens in the snapshot service.
"""

import re
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from strata.config import ExtractionConfig
from strata.core.confidence import extraction_confidence
from strata.core.taxonomy import RELATIONSHIP_LENSES, RelationshipType, is_valid_layer
from strata.models.claim import Claim, ClaimPolarity
from strata.models.signal import ExtractionOptions, Signal, SignalSource
from strata.utils.exceptions import ValidationError
from strata.utils.id_generator import generate_claim_id
from strata.utils.logger import get_logger

logger = get_logger(__name__)


def layer_topic(layer_signature: tuple[int, ...]) -> str:
    """Topic key for a layer signature, e.g. (1, 2) -> "L01+L02"."""
    return "+".join(f"L{layer_id:02d}" for layer_id in layer_signature)


def parse_signals(signals: Iterable[Signal | dict[str, Any]]) -> list[Signal]:
    """
    Coerce raw dictionaries into Signal models.

    Raises:
        ValidationError: If any entry fails model validation
    """
    parsed: list[Signal] = []
    for index, item in enumerate(signals):
        if isinstance(item, Signal):
            parsed.append(item)
            continue
        try:
            parsed.append(Signal.model_validate(item))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Malformed signal at position {index}",
                context={"index": index, "errors": e.errors(include_url=False)},
            ) from e
    return parsed


class KeywordPolarityClassifier:
    """
    Classify a signal group as strength, friction or neutral.

    Each signal votes by keyword hits in its text value; the majority wins
    and a tie is neutral. Swap it for any object exposing ``classify``.
    """

    STRENGTH_KEYWORDS = (
        "strength", "steady", "reliable", "clear", "grounded", "balanced",
        "calm", "confident", "curious", "warm", "supportive", "focused",
    )
    FRICTION_KEYWORDS = (
        "challenge", "pressure", "difficult", "struggle", "tension", "withdraw",
        "shut down", "over-function", "push harder", "control details",
        "people-please", "too porous", "too rigid", "anxious", "overwhelm",
    )

    def __init__(
        self,
        strength_keywords: Iterable[str] | None = None,
        friction_keywords: Iterable[str] | None = None,
    ):
        self._strength = self._compile(strength_keywords or self.STRENGTH_KEYWORDS)
        self._friction = self._compile(friction_keywords or self.FRICTION_KEYWORDS)

    @staticmethod
    def _compile(keywords: Iterable[str]) -> re.Pattern:
        alternatives = "|".join(re.escape(k.lower()) for k in keywords)
        return re.compile(rf"\b(?:{alternatives})")

    def classify(self, signals: list[Signal]) -> ClaimPolarity:
        strength_votes = 0
        friction_votes = 0
        for signal in signals:
            text = signal.text_value()
            friction = bool(self._friction.search(text))
            strength = bool(self._strength.search(text))
            if friction and not strength:
                friction_votes += 1
            elif strength and not friction:
                strength_votes += 1

        if strength_votes > friction_votes:
            return ClaimPolarity.STRENGTH
        if friction_votes > strength_votes:
            return ClaimPolarity.FRICTION
        return ClaimPolarity.NEUTRAL


class ClaimExtractor:
    """
    Convert signal batches into candidate claims.

    Features:
    - Whole-batch validation (any malformed signal aborts the batch)
    - Layer-signature grouping with distinct signal counting
    - Pluggable polarity classification
    - Optional relational connectors per relationship lens
    """

    def __init__(self, config: ExtractionConfig, polarity_classifier=None):
        """
        Initialize extractor.

        Args:
            config: Extraction weights
            polarity_classifier: Object with ``classify(signals) -> ClaimPolarity``
        """
        self.config = config
        self.polarity_classifier = polarity_classifier or KeywordPolarityClassifier()

    def validate_batch(self, user_id: str, signals: list[Signal], source: SignalSource | str) -> SignalSource:
        """
        Validate a batch before extraction.

        Returns:
            The batch source as an enum member

        Raises:
            ValidationError: On empty batch, unknown source, foreign user id,
                missing layer ids or unknown layer ids
        """
        if not signals:
            raise ValidationError("Signal batch is empty", context={"user_id": user_id})

        try:
            batch_source = SignalSource(source)
        except ValueError as e:
            raise ValidationError(
                f"Unknown signal source: {source}",
                context={"user_id": user_id, "source": str(source)},
            ) from e

        for signal in signals:
            context = {"user_id": user_id, "signal_id": signal.signal_id}
            if signal.user_id != user_id:
                raise ValidationError(
                    f"Signal {signal.signal_id} belongs to another user",
                    context={**context, "signal_user_id": signal.user_id},
                )
            if not signal.layer_ids:
                raise ValidationError(f"Signal {signal.signal_id} has no layer ids", context=context)
            unknown = [layer_id for layer_id in signal.layer_ids if not is_valid_layer(layer_id)]
            if unknown:
                raise ValidationError(
                    f"Signal {signal.signal_id} references unknown layers {unknown}",
                    context={**context, "layer_ids": unknown},
                )

        return batch_source

    def extract(
        self,
        user_id: str,
        signals: list[Signal],
        source: SignalSource | str,
        options: ExtractionOptions | None = None,
        now: datetime | None = None,
    ) -> list[Claim]:
        """
        Extract candidate claims from a signal batch.

        Args:
            user_id: Owner of the batch
            signals: Signals to convert
            source: Batch source
            options: Relational connector options
            now: Timestamp for the new claims

        Returns:
            One claim per layer signature, sorted by topic

        Raises:
            ValidationError: If the batch is malformed
        """
        options = options or ExtractionOptions()
        self.validate_batch(user_id, signals, source)
        now = now or datetime.now(UTC)

        groups: dict[tuple[int, ...], dict[str, Signal]] = {}
        for signal in signals:
            # Keyed by signal id so a repeated id counts once
            groups.setdefault(signal.layer_signature, {})[signal.signal_id] = signal

        claims: list[Claim] = []
        for signature in sorted(groups):
            group = groups[signature]
            support = tuple(sorted(group))
            confidence = extraction_confidence(len(support), self.config)

            claims.append(
                Claim(
                    claim_id=generate_claim_id(signature[0]),
                    user_id=user_id,
                    layer_ids=signature,
                    topic=layer_topic(signature),
                    polarity=self.polarity_classifier.classify(list(group.values())),
                    confidence=confidence,
                    extraction_confidence=confidence,
                    supporting_signal_ids=support,
                    created_at=now,
                    last_adjusted_at=now,
                    relational_contexts=self.relational_contexts(signature, options),
                )
            )

        emerging = sum(1 for c in claims if c.is_emerging(self.config.emerging_threshold))
        logger.debug(
            f"Extracted {len(claims)} claims ({emerging} emerging) from {len(signals)} signals",
            extra={"user_id": user_id, "operation": "extract"},
        )
        return claims

    def relational_contexts(
        self, layer_ids: tuple[int, ...], options: ExtractionOptions
    ) -> tuple[RelationshipType, ...]:
        """Relationship types whose lens covers any of the given layers."""
        if not options.include_relational_connectors:
            return ()

        focus = set(options.focus_relationship_types)
        contexts = []
        for relationship_type, lens in RELATIONSHIP_LENSES.items():
            if focus and relationship_type not in focus:
                continue
            if set(layer_ids) & set(lens.primary_layers):
                contexts.append(relationship_type)
        return tuple(contexts)
