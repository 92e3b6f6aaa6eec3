from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from minesweeper_api import models  # noqa: F401 - register tables
from minesweeper_api.app import create_app
from minesweeper_api.services.cache import TTLCache
from minesweeper_api.services.fingerprint import Sha256HashProvider
from minesweeper_api.services.rate_limiter import RateLimitPolicy

START = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds=0, **kwargs):
        self.now = self.now + timedelta(seconds=seconds, **kwargs)
        return self.now


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def cache():
    return TTLCache(default_ttl=30)


@pytest.fixture()
def app(engine, clock):
    return create_app(
        engine=engine,
        clock=clock,
        hash_provider=Sha256HashProvider(),
        policy=RateLimitPolicy(),
    )


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


BOARDS = {
    "beginner": (9, 9, 10),
    "intermediate": (16, 16, 40),
    "expert": (30, 16, 99),
}


@pytest.fixture()
def make_game_data(clock):
    """Build a self-consistent won game for ``difficulty``."""

    def factory(difficulty="beginner", time=42.5, moves=60, game_id="g1", **overrides):
        width, height, mines = BOARDS.get(difficulty, BOARDS["beginner"])
        first_click = (clock() - timedelta(minutes=5)).timestamp() * 1000
        data = {
            "difficulty": difficulty,
            "time": time,
            "moves": moves,
            "gameId": game_id,
            "timestamp": (clock() - timedelta(minutes=6)).isoformat().replace("+00:00", "Z"),
            "boardSize": {"width": width, "height": height},
            "mineCount": mines,
            "gameEndTime": first_click + time * 1000,
            "firstClickTime": first_click,
            "gameState": "won",
        }
        data.update(overrides)
        return data

    return factory
