"""Service test fixtures — file-backed SQLite, fake clients, runtime and API client.

Invariants:
    - Every test gets a fresh SQLite file under tmp_path (restart tests reopen it)
    - Runtime is built with FakeLedger / FakeVenue / FakeClock and a seeded Random
    - get_runtime dependency overridden for route tests

Design Decisions:
    - File DB over :memory: so a second runtime can be built against the same state,
      which is how restart recovery is exercised
    - ASGITransport does not run the lifespan: the runtime is assembled here instead
"""

import random

import pytest
from httpx import ASGITransport, AsyncClient

import burnwheel.infrastructure.database as db_module
from burnwheel.config import Settings
from burnwheel.infrastructure.database import DatabaseSessionManager
from burnwheel.main import app
from burnwheel.services.runtime import build_runtime, get_runtime

from tests.services.fakes import HOUSE, FakeClock, FakeLedger, FakeVenue


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'burnwheel-test.db'}"


@pytest.fixture
async def db(db_url):
    manager = DatabaseSessionManager(db_url)
    await manager.create_schema()
    yield manager
    await manager.dispose()


@pytest.fixture
def settings(db_url):
    return Settings(
        _env_file=None,
        database_url=db_url,
        receiving_address=HOUSE,
        round_interval_seconds=300,
        min_participants=2,
        payout_share=0.5,
        concentration_cap=0.25,
        min_reserve=0,
        fee_buffer=5_000,
        reserve_retry_seconds=60,
        burn_mint="BURNMINT",
        burn_address="INCINERATOR",
        history_capacity=3,
        history_max_limit=20,
        replay_guard_capacity=100,
        feed_capacity=5,
        admin_secret="s3cret",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def venue():
    return FakeVenue()


@pytest.fixture
def make_runtime(settings, db, ledger, venue, clock):
    """Build a runtime over the shared DB (call twice to simulate a restart)."""
    async def _make(settings=settings, **overrides):
        kwargs = {
            "ledger": ledger, "venue": venue,
            "rng": random.Random(11), "clock": clock,
            **overrides,
        }
        return await build_runtime(settings, db, **kwargs)
    return _make


@pytest.fixture
async def runtime(make_runtime):
    return await make_runtime()


@pytest.fixture
async def client(runtime, db):
    """FastAPI test client with the runtime dependency overridden."""
    app.dependency_overrides[get_runtime] = lambda: runtime
    original_manager = db_module.db_manager
    db_module.db_manager = db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager

