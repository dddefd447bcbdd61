"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of habitchallenge.api.auth which
# validates the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, so we register a custom type
# compiler that renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402

from habitchallenge.config import HabitConfig  # noqa: E402
from habitchallenge.database.engine import serialize_sqlite_transactions  # noqa: E402
from habitchallenge.database.models import (  # noqa: E402
    Base,
    ChallengeCategory,
    ChallengeDifficulty,
    LeaderRole,
)
from habitchallenge.engine.clock import FixedClock  # noqa: E402
from habitchallenge.services.challenge_log_service import ChallengeLogService  # noqa: E402
from habitchallenge.services.challenge_service import ChallengeDraft, ChallengeService  # noqa: E402
from habitchallenge.services.notification_service import NotificationService  # noqa: E402
from habitchallenge.services.scheduler_service import SchedulerService  # noqa: E402
from habitchallenge.services.stats_service import StatsService  # noqa: E402
from habitchallenge.services.user_service import UserService  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()

# "Now" for every test unless a test moves the clock itself.
NOW = datetime(2024, 1, 10, 12, 0, 0)
TODAY = NOW.date()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all tables.

    Uses StaticPool so the API's worker threads share the same in-memory
    database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    serialize_sqlite_transactions(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------
@pytest.fixture
def notifier(db_engine, clock) -> NotificationService:
    return NotificationService(db_engine, clock)


@pytest.fixture
def challenges(db_engine, notifier, clock) -> ChallengeService:
    return ChallengeService(db_engine, notifier, clock)


@pytest.fixture
def logs(db_engine, notifier, clock) -> ChallengeLogService:
    return ChallengeLogService(db_engine, notifier, clock)


@pytest.fixture
def stats(db_engine, clock) -> StatsService:
    return StatsService(db_engine, clock)


@pytest.fixture
def scheduler(db_engine, notifier, clock) -> SchedulerService:
    return SchedulerService(db_engine, notifier, clock)


@pytest.fixture
def users(db_engine, clock) -> UserService:
    return UserService(db_engine, clock)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
@pytest.fixture
def make_user(users):
    """``make_user("mason")`` → new user id."""
    def _make(name: str) -> int:
        return users.create_user(f"{name}@example.com", name, name.capitalize()).id
    return _make


def make_draft(**overrides) -> ChallengeDraft:
    """A valid draft starting tomorrow; override any field."""
    fields = dict(
        name="Morning run",
        description="Run 3km every morning",
        category=ChallengeCategory.HEALTH,
        difficulty=ChallengeDifficulty.MEDIUM,
        duration=21,
        start_date=TODAY + timedelta(days=1),
        end_date=TODAY + timedelta(days=21),
        max_members=10,
        is_private=False,
        leader_role=LeaderRole.PARTICIPANT,
    )
    fields.update(overrides)
    return ChallengeDraft(**fields)


@pytest.fixture
def draft():
    return make_draft


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------
@pytest.fixture
def app_config() -> HabitConfig:
    return HabitConfig(app_name="Habit Challenge (test)", timezone="UTC", api_port=8000)


@pytest.fixture
def client(db_engine, clock, app_config):
    """FastAPI TestClient wired to the in-memory engine and fixed clock."""
    from fastapi.testclient import TestClient

    from habitchallenge.api import deps
    from habitchallenge.api.main import app

    app.dependency_overrides[deps.get_engine] = lambda: db_engine
    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_config] = lambda: app_config
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def make_token(user_id: int) -> str:
    """Create a Bearer JWT for *user_id*."""
    from habitchallenge.api.auth import create_access_token

    return create_access_token(user_id)


def auth_header(user_id: int) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def auth():
    return auth_header
