"""Shared fixtures.

Fixtures use function scope so every test gets a fresh store and engine.
Everything runs on the in-memory backend unless a test asks for SQLite.
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest

from strata.config import Config
from strata.core.profile_store import InMemoryProfileStore, SQLiteProfileStore
from strata.models.signal import Signal, SignalSource
from strata.services.profile_engine import ProfileEngine
from strata.utils.id_generator import generate_signal_id

STRENGTH_TEXT = "steady and reliable, I stay calm"
FRICTION_TEXT = "under pressure I control details and withdraw"

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


class FixedClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_signal(
    user_id: str,
    layer_ids: tuple[int, ...],
    text: str = STRENGTH_TEXT,
    source: SignalSource = SignalSource.ONBOARDING,
    signal_id: str | None = None,
) -> Signal:
    return Signal(
        signal_id=signal_id or generate_signal_id(),
        user_id=user_id,
        question_id=f"q_{'_'.join(str(l) for l in layer_ids)}",
        layer_ids=layer_ids,
        raw_value=text,
        source=source,
    )


def make_batch(user_id: str, layers: dict[tuple[int, ...], int], text: str = STRENGTH_TEXT) -> list[Signal]:
    """``count`` fresh signals per layer signature."""
    return [make_signal(user_id, signature, text) for signature, count in layers.items() for _ in range(count)]


# Fixtures


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
async def memory_store() -> AsyncGenerator[InMemoryProfileStore, None]:
    store = InMemoryProfileStore()
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def sqlite_store(tmp_path) -> AsyncGenerator[SQLiteProfileStore, None]:
    store = SQLiteProfileStore(db_path=str(tmp_path / "strata.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def engine(memory_store, config, clock) -> AsyncGenerator[ProfileEngine, None]:
    profile_engine = ProfileEngine(store=memory_store, config=config, clock=clock)
    await profile_engine.initialize()
    yield profile_engine
    await profile_engine.close()


@pytest.fixture
def signal_factory():
    return make_signal


@pytest.fixture
def batch_factory():
    return make_batch
