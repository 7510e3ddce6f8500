"""
Shared test configuration and fixtures.

Registry and resolver tests run against a throwaway SQLite database per test
function, with an adjustable clock so commitment ages and expirations can be
stepped deterministically.
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from xyz.nxt3d.ecs.model.base import Base
from xyz.nxt3d.ecs.registry.commitments import make_commitment
from xyz.nxt3d.ecs.registry.namespaces import NamespaceRegistry

# Importing the model modules registers their tables on Base.metadata
import xyz.nxt3d.ecs.model.credentials  # noqa: F401
import xyz.nxt3d.ecs.model.events  # noqa: F401
import xyz.nxt3d.ecs.model.namespaces  # noqa: F401

OWNER = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
RESOLVER = "0x3333333333333333333333333333333333333333"
RESOLVER_B = "0x4444444444444444444444444444444444444444"
SECRET = b"\x5a" * 32

MIN_COMMITMENT_AGE = 60
MAX_COMMITMENT_AGE = 3600
REGISTRATION_DURATION = 86400


class FakeClock:
    """Callable clock returning a settable unix time."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create async SQLAlchemy engine backed by a per-test SQLite file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ecs.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def registry(session_maker, clock):
    return NamespaceRegistry(
        session_maker,
        parent_name="ecs.eth",
        min_commitment_age=MIN_COMMITMENT_AGE,
        max_commitment_age=MAX_COMMITMENT_AGE,
        registration_duration=REGISTRATION_DURATION,
        clock=clock,
    )


async def register_label(registry, clock, label, owner=OWNER, resolver=None, secret=SECRET):
    """Run a full commit, wait, reveal cycle."""
    await registry.commit(make_commitment(label, owner, secret, resolver))
    clock.advance(MIN_COMMITMENT_AGE)
    return await registry.register(label, owner, secret, resolver)
