"""
Relational Comparator - pairwise and team compatibility over snapshots.

Quick score:
- Each user is read as a 15-layer vector: the summed confidence of their
  qualifying claims touching each layer
- Score is the cosine of the two vectors scaled to [0, 100]; the dot
  product is exactly the sum of confidence products over claim pairs
  that share a layer
- Always computed in canonical pair order, so (a, b) and (b, a) agree

Team operations fan out over C(n, 2) pairs with a bounded semaphore and
report per-pair failures as markers instead of aborting.
"""

import asyncio
import math
from collections.abc import Callable
from datetime import UTC, datetime
from itertools import combinations

from strata.config import Config
from strata.core.collaborators.entitlement import DEEP_ANALYSIS_FEATURE, EntitlementGate
from strata.core.collaborators.identity import IdentityResolver
from strata.core.collaborators.summarizer import NarrativeSummarizer
from strata.core.profile_store.base import ProfileStore
from strata.core.taxonomy import LAYER_DEFINITIONS, RELATIONSHIP_LENSES, get_layer
from strata.models.claim import Claim, ClaimPolarity
from strata.models.relational import (
    ClaimPair,
    CollectiveStrength,
    CompatibilityMatrix,
    CompatibilityScore,
    DeepAnalysis,
    GapSeverity,
    InsufficientData,
    LensScore,
    MatrixCell,
    MemberContribution,
    PairStatus,
    PotentialGap,
    TeamDynamicsProfile,
    TeamMember,
    pair_key,
)
from strata.models.snapshot import Snapshot
from strata.utils.exceptions import (
    DependencyError,
    InsufficientDataError,
    StrataError,
    ValidationError,
)
from strata.utils.id_generator import member_set_hash
from strata.utils.logger import get_logger

logger = get_logger(__name__)

COLLECTIVE_STRENGTH_SHARE = 0.5
GAP_SHARE = 0.4
DOMINANT_PATTERN_COUNT = 3

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def layer_vector(claims: list[Claim], weights: dict[int, float] | None = None) -> dict[int, float]:
    """Summed claim confidence per layer, optionally lens-weighted."""
    vector = {layer.layer_id: 0.0 for layer in LAYER_DEFINITIONS}
    for claim in claims:
        for layer_id in claim.layer_ids:
            vector[layer_id] += claim.confidence
    if weights:
        vector = {k: v * math.sqrt(weights.get(k, 1.0)) for k, v in vector.items()}
    return vector


def cosine_score(a: dict[int, float], b: dict[int, float]) -> float:
    """Cosine similarity scaled to [0, 100]."""
    dot = sum(a[k] * b[k] for k in a)
    norm_a = math.sqrt(sum(v * v for v in a.values()))
    norm_b = math.sqrt(sum(v * v for v in b.values()))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return round(min(100.0, max(0.0, 100.0 * dot / (norm_a * norm_b))), 2)


class RelationalComparator:
    """
    Compatibility service over the latest snapshots.

    Features:
    - Quick score with a per-pair freshness cache
    - Team compatibility matrix with bounded concurrency
    - Team dynamics profile cached by (team_id, member set)
    - Entitlement-gated deep analysis
    """

    def __init__(
        self,
        store: ProfileStore,
        config: Config,
        entitlement_gate: EntitlementGate,
        summarizer: NarrativeSummarizer,
        identity_resolver: IdentityResolver | None = None,
        clock: Clock | None = None,
    ):
        """
        Initialize comparator.

        Args:
            store: Profile store with snapshots and the score cache
            config: Configuration object
            entitlement_gate: Credit gate for deep analysis
            summarizer: Narrative provider
            identity_resolver: Display-name lookup for team members
            clock: Time source; injectable for staleness tests
        """
        self.store = store
        self.config = config
        self.entitlement_gate = entitlement_gate
        self.summarizer = summarizer
        self.identity_resolver = identity_resolver
        self.clock = clock or _utcnow

        self._team_cache: dict[tuple[str, str], TeamDynamicsProfile] = {}

    @property
    def emerging_threshold(self) -> float:
        return self.config.extraction.emerging_threshold

    def qualifying_claims(self, snapshot: Snapshot | None) -> list[Claim]:
        """Claims at or above the emerging threshold, sorted by id."""
        if snapshot is None:
            return []
        return sorted(snapshot.claims_at_or_above(self.emerging_threshold), key=lambda c: c.claim_id)

    # ═══════════════════════════════════════════════════════════
    # QUICK SCORE
    # ═══════════════════════════════════════════════════════════

    async def calculate_quick_score(
        self, user_a: str, user_b: str, force_refresh: bool = False
    ) -> CompatibilityScore | InsufficientData:
        """
        Pairwise compatibility.

        Args:
            user_a: First user
            user_b: Second user
            force_refresh: Ignore a fresh cached score

        Returns:
            CompatibilityScore, or InsufficientData when either user has no
            snapshot or no claim at or above the emerging threshold

        Raises:
            ValidationError: If both ids are the same
        """
        if user_a == user_b:
            raise ValidationError(
                "Cannot compare a user with themselves", context={"user_id": user_a}
            )

        first, second = pair_key(user_a, user_b)
        now = self.clock()

        snapshot_a, snapshot_b = await asyncio.gather(
            self.store.get_latest_snapshot(first), self.store.get_latest_snapshot(second)
        )

        missing = tuple(uid for uid, snap in ((first, snapshot_a), (second, snapshot_b)) if snap is None)
        if missing:
            return InsufficientData(
                user_a=first, user_b=second, reason="no_snapshot", missing_user_ids=missing
            )

        # A score written after an invalidation still names the snapshots it used
        if not force_refresh:
            cached = await self.store.get_compatibility_score(first, second)
            if (
                cached
                and cached.is_based_on(snapshot_a.snapshot_id, snapshot_b.snapshot_id)
                and not cached.is_stale(now, self.config.compatibility.freshness_days)
            ):
                logger.debug(f"Cache hit for {first}/{second}")
                return cached

        claims_a = self.qualifying_claims(snapshot_a)
        claims_b = self.qualifying_claims(snapshot_b)
        missing = tuple(uid for uid, claims in ((first, claims_a), (second, claims_b)) if not claims)
        if missing:
            return InsufficientData(
                user_a=first, user_b=second, reason="no_qualifying_claims", missing_user_ids=missing
            )

        score = CompatibilityScore(
            user_a=first,
            user_b=second,
            score=cosine_score(layer_vector(claims_a), layer_vector(claims_b)),
            calculated_at=now,
            basis=tuple(self._basis(claims_a, claims_b)),
            shared_layer_ids=tuple(
                sorted({l for c in claims_a for l in c.layer_ids} & {l for c in claims_b for l in c.layer_ids})
            ),
            snapshot_ids=(snapshot_a.snapshot_id, snapshot_b.snapshot_id),
        )
        await self.store.save_compatibility_score(score)

        logger.info(
            f"Quick score {first}/{second}: {score.score}",
            extra={"user_a": first, "user_b": second, "operation": "quick_score"},
        )
        return score

    @staticmethod
    def _basis(claims_a: list[Claim], claims_b: list[Claim]) -> list[ClaimPair]:
        pairs = []
        for claim_a in claims_a:
            for claim_b in claims_b:
                shared = sorted(set(claim_a.layer_ids) & set(claim_b.layer_ids))
                if shared:
                    pairs.append(
                        ClaimPair(
                            claim_a=claim_a.claim_id,
                            claim_b=claim_b.claim_id,
                            shared_layer_ids=tuple(shared),
                            weight=round(claim_a.confidence * claim_b.confidence, 6),
                        )
                    )
        return pairs

    # ═══════════════════════════════════════════════════════════
    # TEAM MATRIX
    # ═══════════════════════════════════════════════════════════

    @staticmethod
    def _member_ids(members: list[TeamMember | str]) -> list[str]:
        ids = [m.user_id if isinstance(m, TeamMember) else m for m in members]
        return list(dict.fromkeys(ids))

    async def _latest_snapshots(self, user_ids: list[str]) -> dict[str, Snapshot | None]:
        snapshots = await asyncio.gather(*(self.store.get_latest_snapshot(uid) for uid in user_ids))
        return dict(zip(user_ids, snapshots))

    async def calculate_compatibility_matrix(
        self, team_id: str, members: list[TeamMember | str]
    ) -> CompatibilityMatrix:
        """
        Score all C(n, 2) member pairs.

        One failing pair becomes an error cell; the rest still complete.

        Raises:
            InsufficientDataError: Fewer than two members with qualifying claims
            DependencyError: Every pair failed
        """
        member_ids = self._member_ids(members)
        snapshots = await self._latest_snapshots(member_ids)
        with_data = [uid for uid in member_ids if self.qualifying_claims(snapshots[uid])]

        if len(with_data) < self.config.compatibility.min_team_members:
            raise InsufficientDataError(
                f"Team {team_id} needs at least {self.config.compatibility.min_team_members} members with data",
                context={"team_id": team_id, "members_with_data": with_data},
            )

        pairs = list(combinations(sorted(member_ids), 2))
        semaphore = asyncio.Semaphore(self.config.compatibility.max_workers)

        async def score_pair(user_a: str, user_b: str):
            async with semaphore:
                return await self.calculate_quick_score(user_a, user_b)

        results = await asyncio.gather(
            *(score_pair(a, b) for a, b in pairs), return_exceptions=True
        )

        cells: list[MatrixCell] = []
        for (user_a, user_b), result in zip(pairs, results):
            if isinstance(result, CompatibilityScore):
                cells.append(
                    MatrixCell(
                        user_a=user_a,
                        user_b=user_b,
                        status=PairStatus.SCORED,
                        score=result.score,
                        shared_layer_ids=result.shared_layer_ids,
                    )
                )
            elif isinstance(result, InsufficientData):
                cells.append(MatrixCell(user_a=user_a, user_b=user_b, status=PairStatus.INSUFFICIENT_DATA))
            else:
                cells.append(self._error_cell(team_id, user_a, user_b, result))

        if pairs and all(c.status == PairStatus.ERROR for c in cells):
            raise DependencyError(
                f"Every pair of team {team_id} failed",
                context={"team_id": team_id, "pair_count": len(pairs)},
            )

        matrix = CompatibilityMatrix(
            team_id=team_id, member_ids=member_ids, cells=cells, calculated_at=self.clock()
        )
        logger.info(
            f"Matrix for team {team_id}: {len(matrix.scored)} scored, {len(matrix.errors)} errors",
            extra={"team_id": team_id, "operation": "compatibility_matrix", "status": matrix.status.value},
        )
        return matrix

    @staticmethod
    def _error_cell(team_id: str, user_a: str, user_b: str, error: BaseException) -> MatrixCell:
        if not isinstance(error, StrataError):
            error = DependencyError(
                f"Pair computation failed: {error}",
                context={"user_a": user_a, "user_b": user_b, "error_type": type(error).__name__},
            )
        logger.error(
            f"Pair {user_a}/{user_b} failed in team {team_id}: {error.message}",
            extra={"team_id": team_id, "user_a": user_a, "user_b": user_b, "kind": error.kind},
        )
        return MatrixCell(user_a=user_a, user_b=user_b, status=PairStatus.ERROR, error=error.to_dict())

    # ═══════════════════════════════════════════════════════════
    # TEAM DYNAMICS
    # ═══════════════════════════════════════════════════════════

    async def get_team_dynamics(
        self, team_id: str, members: list[TeamMember | str], force_refresh: bool = False
    ) -> TeamDynamicsProfile:
        """
        Aggregate the latest snapshots of a team.

        Raises:
            InsufficientDataError: Fewer than two members have a snapshot
            DependencyError: Identity resolution failed
        """
        member_ids = self._member_ids(members)
        cache_key = (team_id, member_set_hash(member_ids))
        now = self.clock()

        cached = self._team_cache.get(cache_key)
        ttl = self.config.compatibility.team_cache_ttl_seconds
        if cached and not force_refresh and (now - cached.aggregated_at).total_seconds() < ttl:
            return cached

        snapshots = await self._latest_snapshots(member_ids)
        with_data = {uid: snap for uid, snap in snapshots.items() if snap is not None}
        if len(with_data) < self.config.compatibility.min_team_members:
            raise InsufficientDataError(
                f"Team {team_id} needs at least {self.config.compatibility.min_team_members} members with snapshots",
                context={"team_id": team_id, "members_with_data": sorted(with_data)},
            )

        team_members = await self._resolve_members(members, member_ids)
        threshold = self.config.recalibration.retirement_threshold
        active = {uid: snap.active_claims(threshold) for uid, snap in with_data.items()}
        holdings = {uid: {p.pattern_id for p in snap.patterns} for uid, snap in with_data.items()}
        names = {m.user_id: m.name for m in team_members}

        profile = TeamDynamicsProfile(
            team_id=team_id,
            member_set_hash=cache_key[1],
            members=team_members,
            members_without_data=[uid for uid in member_ids if uid not in with_data],
            aggregated_at=now,
            collective_strengths=self._collective_strengths(with_data),
            potential_gaps=self._potential_gaps(active),
            member_contributions=self._contributions(holdings, active, names),
            dominant_pattern_ids=self._dominant_patterns(holdings),
            cohesion_score=self._cohesion(holdings),
            diversity_score=self._diversity(holdings),
            balance_score=self._balance(active),
        )
        self._store_team_profile(cache_key, profile, now)

        logger.info(
            f"Team dynamics for {team_id}: {len(with_data)} members with data",
            extra={"team_id": team_id, "operation": "team_dynamics"},
        )
        return profile

    def _store_team_profile(self, key: tuple[str, str], profile: TeamDynamicsProfile, now: datetime) -> None:
        """Cache a profile, dropping entries past their TTL."""
        ttl = self.config.compatibility.team_cache_ttl_seconds
        expired = [
            k for k, cached in self._team_cache.items()
            if (now - cached.aggregated_at).total_seconds() >= ttl
        ]
        for k in expired:
            del self._team_cache[k]
        self._team_cache[key] = profile

    async def _resolve_members(self, members: list[TeamMember | str], member_ids: list[str]) -> list[TeamMember]:
        given = {m.user_id: m for m in members if isinstance(m, TeamMember)}
        result = [given.get(uid) or TeamMember(user_id=uid) for uid in member_ids]

        unnamed = [m.user_id for m in result if not m.name]
        if not unnamed or self.identity_resolver is None:
            return result

        try:
            resolved = await self.identity_resolver.resolve(unnamed)
        except Exception as e:
            raise DependencyError(
                f"Identity resolution failed: {e}", context={"user_ids": unnamed}
            ) from e

        return [
            m.model_copy(update={"name": resolved[m.user_id]}) if m.user_id in resolved else m
            for m in result
        ]

    @staticmethod
    def _collective_strengths(snapshots: dict[str, Snapshot]) -> list[CollectiveStrength]:
        total = len(snapshots)
        holders: dict[str, list[str]] = {}
        names: dict[str, str] = {}
        for uid, snap in snapshots.items():
            for pattern in snap.patterns:
                holders.setdefault(pattern.pattern_id, []).append(uid)
                names[pattern.pattern_id] = pattern.name

        strengths = [
            CollectiveStrength(
                pattern_id=pid,
                name=names[pid],
                contributing_members=sorted(uids),
                prevalence=round(len(uids) / total, 4),
            )
            for pid, uids in holders.items()
            if len(uids) / total >= COLLECTIVE_STRENGTH_SHARE
        ]
        return sorted(strengths, key=lambda s: (-s.prevalence, s.pattern_id))

    @staticmethod
    def _friction_layers(claims: list[Claim]) -> set[int]:
        return {l for c in claims if c.polarity == ClaimPolarity.FRICTION for l in c.layer_ids}

    @staticmethod
    def _strength_layers(claims: list[Claim]) -> set[int]:
        return {l for c in claims if c.polarity == ClaimPolarity.STRENGTH for l in c.layer_ids}

    def _potential_gaps(self, active: dict[str, list[Claim]]) -> list[PotentialGap]:
        total = len(active)
        counts: dict[int, int] = {}
        for claims in active.values():
            for layer_id in self._friction_layers(claims):
                counts[layer_id] = counts.get(layer_id, 0) + 1

        gaps = []
        for layer_id, count in sorted(counts.items()):
            prevalence = count / total
            if prevalence < GAP_SHARE:
                continue
            if prevalence >= 0.6:
                severity = GapSeverity.HIGH
            elif prevalence >= 0.5:
                severity = GapSeverity.MEDIUM
            else:
                severity = GapSeverity.LOW
            gaps.append(
                PotentialGap(
                    layer_id=layer_id,
                    area=get_layer(layer_id).name,
                    prevalence=round(prevalence, 4),
                    severity=severity,
                )
            )
        return sorted(gaps, key=lambda g: (-g.prevalence, g.layer_id))

    def _contributions(
        self,
        holdings: dict[str, set[str]],
        active: dict[str, list[Claim]],
        names: dict[str, str | None],
    ) -> list[MemberContribution]:
        contributions = []
        for uid in sorted(holdings):
            others = [other for other in holdings if other != uid]
            held_elsewhere = set().union(*(holdings[o] for o in others)) if others else set()
            others_friction = set().union(*(self._friction_layers(active[o]) for o in others)) if others else set()
            contributions.append(
                MemberContribution(
                    user_id=uid,
                    display_name=names.get(uid),
                    unique_pattern_ids=sorted(holdings[uid] - held_elsewhere),
                    supporting_layer_ids=sorted(self._strength_layers(active[uid]) & others_friction),
                )
            )
        return contributions

    @staticmethod
    def _dominant_patterns(holdings: dict[str, set[str]]) -> list[str]:
        counts: dict[str, int] = {}
        for patterns in holdings.values():
            for pid in patterns:
                counts[pid] = counts.get(pid, 0) + 1
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [pid for pid, _ in ranked[:DOMINANT_PATTERN_COUNT]]

    @staticmethod
    def _cohesion(holdings: dict[str, set[str]]) -> float:
        """Share of distinct patterns held by at least half the team."""
        total = len(holdings)
        counts: dict[str, int] = {}
        for patterns in holdings.values():
            for pid in patterns:
                counts[pid] = counts.get(pid, 0) + 1
        if not counts:
            return 0.0
        shared = sum(1 for c in counts.values() if c >= total / 2)
        return round(100.0 * shared / len(counts), 2)

    @staticmethod
    def _diversity(holdings: dict[str, set[str]]) -> float:
        """Distinct patterns relative to all pattern holdings."""
        holding_count = sum(len(p) for p in holdings.values())
        if holding_count == 0:
            return 0.0
        distinct = len(set().union(*holdings.values()))
        return round(min(100.0, 100.0 * distinct / holding_count), 2)

    def _balance(self, active: dict[str, list[Claim]]) -> float:
        """Share of team friction layers covered by someone's strength."""
        friction = set().union(*(self._friction_layers(c) for c in active.values()))
        strength = set().union(*(self._strength_layers(c) for c in active.values()))
        if not friction:
            return 100.0
        return round(100.0 * len(friction & strength) / len(friction), 2)

    # ═══════════════════════════════════════════════════════════
    # DEEP ANALYSIS
    # ═══════════════════════════════════════════════════════════

    async def generate_deep_analysis(
        self, requesting_user_id: str, user_a: str, user_b: str
    ) -> DeepAnalysis:
        """
        Premium pairwise analysis.

        A denied entitlement is a normal result (allowed=False), not an error.

        Raises:
            DependencyError: Entitlement gate or summarizer failed
            InsufficientDataError: Either user lacks qualifying claims
        """
        try:
            decision = await self.entitlement_gate.can_generate(requesting_user_id, DEEP_ANALYSIS_FEATURE)
        except Exception as e:
            raise DependencyError(
                f"Entitlement check failed: {e}",
                context={"user_id": requesting_user_id, "feature": DEEP_ANALYSIS_FEATURE},
            ) from e

        first, second = pair_key(user_a, user_b)
        if not decision.allowed:
            logger.info(
                f"Deep analysis denied for {requesting_user_id}: {decision.reason}",
                extra={"user_id": requesting_user_id, "credits_required": decision.credits_required},
            )
            return DeepAnalysis(user_a=first, user_b=second, allowed=False, reason=decision.reason)

        base = await self.calculate_quick_score(first, second)
        if isinstance(base, InsufficientData):
            raise InsufficientDataError(
                f"Not enough data to analyse {first}/{second}",
                context={"user_a": first, "user_b": second, "reason": base.reason,
                         "missing_user_ids": list(base.missing_user_ids)},
            )

        snapshots = await self._latest_snapshots([first, second])
        snap_a, snap_b = snapshots[first], snapshots[second]
        claims_a = self.qualifying_claims(snap_a)
        claims_b = self.qualifying_claims(snap_b)

        friction_a, friction_b = self._friction_layers(claims_a), self._friction_layers(claims_b)
        strength_a, strength_b = self._strength_layers(claims_a), self._strength_layers(claims_b)

        lens_scores = [
            LensScore(
                relationship_type=relationship_type,
                score=cosine_score(
                    layer_vector(claims_a, lens.layer_weights), layer_vector(claims_b, lens.layer_weights)
                ),
            )
            for relationship_type, lens in RELATIONSHIP_LENSES.items()
        ]

        analysis = DeepAnalysis(
            user_a=first,
            user_b=second,
            allowed=True,
            generated_at=self.clock(),
            base_score=base.score,
            shared_pattern_ids=sorted({p.pattern_id for p in snap_a.patterns} & {p.pattern_id for p in snap_b.patterns}),
            shared_theme_ids=sorted({t.theme_id for t in snap_a.themes} & {t.theme_id for t in snap_b.themes}),
            friction_layer_ids=sorted(friction_a & friction_b),
            complementary_layer_ids=sorted((strength_a & friction_b) | (strength_b & friction_a)),
            lens_scores=lens_scores,
        )

        try:
            narrative = await self.summarizer.narrate_pair(analysis)
        except Exception as e:
            raise DependencyError(
                f"Narrative generation failed: {e}", context={"user_a": first, "user_b": second}
            ) from e

        return analysis.model_copy(update={"narrative": narrative})
