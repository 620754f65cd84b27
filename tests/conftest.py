"""
Shared fixtures for the lattice test suite.

Every test gets its own SQLite database file so tests never share grants,
policies or audit rows.
"""
import pytest
import pytest_asyncio

from lattice.core.database.engine import build_engine, build_session_factory, init_db
from lattice.core.lattice import LatticeCore


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'lattice.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def core(session_factory):
    """A fully wired engine with a permissive ABAC default and auditing on."""
    core = LatticeCore(
        session_factory=session_factory,
        policy_cache_ttl_ms=30_000,
        abac_default_decision="permit",
        audit_enabled=True,
    )
    await core.startup()
    return core
