"""Pytest configuration and fixtures: a file-backed SQLite database per test."""
import random

import pytest
from httpx import ASGITransport, AsyncClient

from tourbot.models import create_engine, create_session_factory, init_db
from tourbot.services.lifecycle import TournamentController
from tourbot.services.store import TournamentStore
from web.api.main import create_app

GUILD_ID = 111111111111111111


@pytest.fixture
async def engine(tmp_path):
    eng = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'tourbot_test.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def store(engine):
    return TournamentStore(create_session_factory(engine))


@pytest.fixture
def controller(store):
    """Controller with a seeded shuffle so pairings are reproducible."""
    return TournamentController(store, rng=random.Random(1234))


@pytest.fixture
def guild_id():
    return GUILD_ID


@pytest.fixture
def fill(controller):
    """Register ``count`` players with consecutive user IDs; returns the IDs."""

    async def _fill(tournament_id: int, count: int, first_id: int = 1001) -> list[int]:
        ids = list(range(first_id, first_id + count))
        for uid in ids:
            await controller.register(tournament_id, uid, f"player{uid}")
        return ids

    return _fill


@pytest.fixture
async def client(store):
    """Async HTTP client for testing the API (ASGI lifespan doesn't run with httpx)."""
    async with AsyncClient(
        transport=ASGITransport(app=create_app(store)),
        base_url="http://test",
    ) as ac:
        yield ac
