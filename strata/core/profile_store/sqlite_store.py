"""
SQLite profile store implementation.

Clean, efficient implementation using aiosqlite. Models are stored as
JSON documents next to the columns used for lookups.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from strata.core.profile_store.base import ProfileStore
from strata.models.experiment import ThoughtExperiment
from strata.models.relational import CompatibilityScore, pair_key
from strata.models.snapshot import ClaimState, Snapshot
from strata.utils.exceptions import ConcurrencyConflictError, StoreError
from strata.utils.logger import get_logger

logger = get_logger(__name__)


class SQLiteProfileStore(ProfileStore):
    """
    SQLite-based profile store.

    Features:
    - Append-only snapshot log with a latest pointer table
    - Versioned claim state rows for optimistic concurrency
    - Compatibility cache keyed by canonical user pair
    - Multi-row writes committed in one transaction

    Writes share one connection and are serialized by a write lock, so one
    task's commit never publishes another task's unfinished transaction.
    """

    def __init__(self, db_path: str = "data/strata.db"):
        """
        Initialize SQLite profile store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

        # Ensure directory exists
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute("PRAGMA journal_mode = WAL")
            await self.connection.commit()

    async def initialize(self) -> None:
        """Initialize database schema."""
        await self.connect()

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS snapshots (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                source TEXT NOT NULL,
                generated_at TEXT NOT NULL,
                data TEXT NOT NULL,
                UNIQUE (user_id, version)
            )
        """
        )

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS latest_snapshots (
                user_id TEXT PRIMARY KEY,
                snapshot_id TEXT NOT NULL REFERENCES snapshots(id)
            )
        """
        )

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS claim_states (
                user_id TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                data TEXT NOT NULL
            )
        """
        )

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS compatibility_scores (
                user_a TEXT NOT NULL,
                user_b TEXT NOT NULL,
                calculated_at TEXT NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY (user_a, user_b)
            )
        """
        )

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS thought_experiments (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                layer_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                data TEXT NOT NULL
            )
        """
        )

        # Create indices
        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_snapshots_user ON snapshots(user_id, version)"
        )
        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_scores_user_b ON compatibility_scores(user_b)"
        )
        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_experiments_user ON thought_experiments(user_id, layer_id)"
        )

        await self.connection.commit()
        logger.info(f"SQLite profile store initialized at {self.db_path}")

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Hold the write lock; commit on success, roll back on any error."""
        await self.connect()

        async with self._write_lock:
            try:
                yield self.connection
            except Exception:
                await self.connection.rollback()
                raise
            await self.connection.commit()

    # ═══════════════════════════════════════════════════════════
    # SNAPSHOT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def _insert_snapshot(self, conn: aiosqlite.Connection, snapshot: Snapshot) -> None:
        try:
            await conn.execute(
                """
                INSERT INTO snapshots (id, user_id, version, source, generated_at, data)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    snapshot.snapshot_id,
                    snapshot.user_id,
                    snapshot.version,
                    snapshot.source.value,
                    snapshot.generated_at.isoformat(),
                    snapshot.model_dump_json(),
                ),
            )
        except aiosqlite.IntegrityError as e:
            raise StoreError(
                f"Snapshot already exists: {snapshot.snapshot_id}",
                context={
                    "snapshot_id": snapshot.snapshot_id,
                    "user_id": snapshot.user_id,
                    "version": snapshot.version,
                },
            ) from e

        await conn.execute(
            "INSERT OR REPLACE INTO latest_snapshots (user_id, snapshot_id) VALUES (?, ?)",
            (snapshot.user_id, snapshot.snapshot_id),
        )

    async def append_snapshot(self, snapshot: Snapshot) -> None:
        """Append a snapshot and move the latest pointer in one transaction."""
        async with self._transaction() as conn:
            await self._insert_snapshot(conn, snapshot)

    async def get_snapshot(self, snapshot_id: str) -> Snapshot | None:
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT data FROM snapshots WHERE id = ?", (snapshot_id,)
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return Snapshot.model_validate_json(row[0])

    async def get_latest_snapshot(self, user_id: str) -> Snapshot | None:
        await self.connect()

        cursor = await self.connection.execute(
            """
            SELECT s.data FROM latest_snapshots l
            JOIN snapshots s ON s.id = l.snapshot_id
            WHERE l.user_id = ?
            """,
            (user_id,),
        )
        row = await cursor.fetchone()

        return Snapshot.model_validate_json(row[0]) if row else None

    async def list_snapshots(self, user_id: str, limit: int = 10) -> list[Snapshot]:
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT data FROM snapshots WHERE user_id = ? ORDER BY version DESC LIMIT ?",
            (user_id, limit),
        )
        rows = await cursor.fetchall()

        return [Snapshot.model_validate_json(row[0]) for row in rows]

    # ═══════════════════════════════════════════════════════════
    # CLAIM STATE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def get_claim_state(self, user_id: str) -> ClaimState:
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT data FROM claim_states WHERE user_id = ?", (user_id,)
        )
        row = await cursor.fetchone()

        if not row:
            return ClaimState(user_id=user_id)

        return ClaimState.model_validate_json(row[0])

    async def _swap_claim_state(
        self, conn: aiosqlite.Connection, state: ClaimState, expected_version: int
    ) -> ClaimState:
        """Compare-and-swap on the version column."""
        stored = state.model_copy(
            update={"version": expected_version + 1, "updated_at": datetime.now(UTC)}
        )

        if expected_version == 0:
            cursor = await conn.execute(
                "INSERT OR IGNORE INTO claim_states (user_id, version, data) VALUES (?, ?, ?)",
                (state.user_id, stored.version, stored.model_dump_json()),
            )
        else:
            cursor = await conn.execute(
                "UPDATE claim_states SET version = ?, data = ? WHERE user_id = ? AND version = ?",
                (stored.version, stored.model_dump_json(), state.user_id, expected_version),
            )

        if cursor.rowcount != 1:
            raise ConcurrencyConflictError(
                f"Claim state of {state.user_id} moved on",
                context={"user_id": state.user_id, "expected_version": expected_version},
            )

        return stored

    async def save_claim_state(self, state: ClaimState, expected_version: int) -> ClaimState:
        async with self._transaction() as conn:
            return await self._swap_claim_state(conn, state, expected_version)

    async def commit_profile(
        self,
        state: ClaimState,
        expected_version: int,
        snapshot: Snapshot | None = None,
        experiment: ThoughtExperiment | None = None,
    ) -> ClaimState:
        """Claim state, snapshot and experiment in one transaction."""
        async with self._transaction() as conn:
            stored = await self._swap_claim_state(conn, state, expected_version)
            if snapshot is not None:
                await self._insert_snapshot(conn, snapshot)
            if experiment is not None:
                await self._put_thought_experiment(conn, experiment)

        return stored

    # ═══════════════════════════════════════════════════════════
    # COMPATIBILITY CACHE
    # ═══════════════════════════════════════════════════════════

    async def get_compatibility_score(self, user_a: str, user_b: str) -> CompatibilityScore | None:
        await self.connect()

        first, second = pair_key(user_a, user_b)
        cursor = await self.connection.execute(
            "SELECT data FROM compatibility_scores WHERE user_a = ? AND user_b = ?",
            (first, second),
        )
        row = await cursor.fetchone()

        return CompatibilityScore.model_validate_json(row[0]) if row else None

    async def save_compatibility_score(self, score: CompatibilityScore) -> None:
        first, second = score.key

        async with self._transaction() as conn:
            await conn.execute(
                """
                INSERT OR REPLACE INTO compatibility_scores (user_a, user_b, calculated_at, data)
                VALUES (?, ?, ?, ?)
                """,
                (first, second, score.calculated_at.isoformat(), score.model_dump_json()),
            )

    async def invalidate_compatibility_scores(self, user_id: str) -> int:
        async with self._transaction() as conn:
            cursor = await conn.execute(
                "DELETE FROM compatibility_scores WHERE user_a = ? OR user_b = ?",
                (user_id, user_id),
            )

        return cursor.rowcount

    # ═══════════════════════════════════════════════════════════
    # THOUGHT EXPERIMENTS
    # ═══════════════════════════════════════════════════════════

    async def _put_thought_experiment(self, conn: aiosqlite.Connection, experiment: ThoughtExperiment) -> None:
        await conn.execute(
            """
            INSERT OR REPLACE INTO thought_experiments (id, user_id, layer_id, created_at, data)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                experiment.experiment_id,
                experiment.user_id,
                experiment.layer_id,
                experiment.created_at.isoformat(),
                experiment.model_dump_json(),
            ),
        )

    async def save_thought_experiment(self, experiment: ThoughtExperiment) -> None:
        async with self._transaction() as conn:
            await self._put_thought_experiment(conn, experiment)

    async def get_thought_experiment(self, experiment_id: str) -> ThoughtExperiment | None:
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT data FROM thought_experiments WHERE id = ?", (experiment_id,)
        )
        row = await cursor.fetchone()

        return ThoughtExperiment.model_validate_json(row[0]) if row else None

    async def list_thought_experiments(self, user_id: str, layer_id: int | None = None) -> list[ThoughtExperiment]:
        await self.connect()

        query = "SELECT data FROM thought_experiments WHERE user_id = ?"
        params: list = [user_id]

        if layer_id is not None:
            query += " AND layer_id = ?"
            params.append(layer_id)

        query += " ORDER BY created_at DESC, rowid DESC"

        cursor = await self.connection.execute(query, params)
        rows = await cursor.fetchall()

        return [ThoughtExperiment.model_validate_json(row[0]) for row in rows]

    async def close(self) -> None:
        """Close the connection."""
        if self.connection is not None:
            await self.connection.close()
            self.connection = None
