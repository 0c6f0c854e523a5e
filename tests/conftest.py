"""
Pytest configuration: hypothesis profile and an API client on a throwaway database.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient
from hypothesis import settings, HealthCheck
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database.engine import create_engine, get_db, init_db
from app.core.rate_limit import limiter
from app.main import app


settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow]
)
settings.load_profile("default")


@pytest.fixture(scope="function")
def client(tmp_path):
    """TestClient bound to a fresh SQLite file per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'directory.db'}")
    asyncio.run(init_db(engine))
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        asyncio.run(engine.dispose())
