# pushup_backend/conftest.py
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add repository root to PYTHONPATH
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

os.environ.setdefault("ENV", "test")
os.environ.setdefault("CHALLENGE_STORE", "memory")


class FakeClock:
    """Settable UTC clock; the challenge engine reads days from it in UTC."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set_day(self, year: int, month: int, day: int, hour: int = 9) -> None:
        self.now = datetime(year, month, day, hour, 0, tzinfo=timezone.utc)

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store():
    from pushup_backend.features.challenges.persistence import InMemoryChallengeStore

    return InMemoryChallengeStore()


@pytest.fixture
def challenge_service(memory_store, clock):
    from pushup_backend.features.challenges.service import ChallengeService

    return ChallengeService(memory_store, tz=timezone.utc, clock=clock)


@pytest.fixture
def sqlite_db():
    """
    In-memory SQLite database with all tables created.

    Set DATABASE_URL to run persistence tests against a real server instead.
    """
    from pushup_backend.core import database

    database.dispose_engine()
    database.init_engine(os.getenv("DATABASE_URL") or "sqlite://")
    database.create_all_tables()
    yield database
    database.drop_all_tables()
    database.dispose_engine()


@pytest.fixture
def api_client(challenge_service):
    """TestClient whose challenge service uses the fixed clock and a fresh memory store."""
    from fastapi.testclient import TestClient

    from pushup_backend.api.challenges import get_challenge_service
    from pushup_backend.main import app

    app.dependency_overrides[get_challenge_service] = lambda: challenge_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_challenge_service, None)
