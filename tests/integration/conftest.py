"""Integration-test fixtures.

Requires a migrated PostgreSQL (``alembic upgrade head``) and, when
LOCK_BACKEND=redis, a running Redis. Every test here is skipped when the
database cannot be reached.

All integration tests share a single event loop so that the module-level
SQLAlchemy async engine pool stays valid across the session.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.main import app
from src.stk_common.database import engine


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def database_available() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM wallets LIMIT 1"))
    except Exception:
        return False
    return True


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client(database_available: bool) -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client: keeps the engine pool alive."""
    if not database_available:
        pytest.skip("PostgreSQL with migrated schema is not reachable")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def user_headers() -> dict[str, str]:
    """A fresh caller identity per test so reruns never collide."""
    return {"X-User-Id": f"it_{uuid.uuid4().hex[:12]}"}
