"""Pytest configuration and shared fixtures.

Database tests run against a throwaway SQLite file per test, created from the
ORM metadata and seeded with the role/permission catalog.
"""

from typing import Dict

import pytest
import pytest_asyncio
from sqlalchemy import select

from hailcrm.core.rbac.cache import PermissionCache, reset_permission_cache
from hailcrm.db.base import Base
from hailcrm.db.models import Permission, Role, User
from hailcrm.db.seed import seed_rbac
from hailcrm.db.session import build_engine, build_sessionmaker


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_default_cache():
    """Keep the process-wide cache from leaking between tests."""
    reset_permission_cache()
    yield
    reset_permission_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> PermissionCache:
    return PermissionCache(ttl_seconds=300, clock=clock)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rbac.sqlite'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(db_session, cache):
    """Store populated with the default catalog."""
    return await seed_rbac(db_session, cache=cache)


@pytest_asyncio.fixture
async def role_ids(db_session, seeded) -> Dict[str, int]:
    rows = await db_session.execute(select(Role.name, Role.id))
    return {name: role_id for name, role_id in rows.all()}


@pytest_asyncio.fixture
async def permission_ids(db_session, seeded) -> Dict[str, int]:
    rows = await db_session.execute(select(Permission.name, Permission.id))
    return {name: permission_id for name, permission_id in rows.all()}


@pytest.fixture
def user_factory(db_session):
    """Factory fixture creating committed users."""
    counter = {"n": 0}

    async def _create(name: str = None, email: str = None, user_id: int = None) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            id=user_id,
            name=name or f"Test User {n}",
            email=email or f"user{n}@example.com",
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _create
