"""Global test fixtures and utilities for lifequest tests"""
import pytest
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime, timedelta, timezone

from lifequest.gamification import quest_system
from lifequest.gamification.catalog import Catalog
from lifequest.gamification.clock import FixedClock
from lifequest.gamification.orchestrator import Orchestrator
from lifequest.models.character import Character
from lifequest.models.recurring import RecurringItem, RecurringKind
from lifequest.models.resource import ResourceKind, ResourcePool


NOW = datetime(2025, 1, 6, 8, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# Clock Fixtures
# ============================================================================

@pytest.fixture
def now():
    """Reference instant used by every test"""
    return NOW


@pytest.fixture
def fixed_clock():
    """Clock pinned at NOW; advance() moves it forward"""
    return FixedClock(NOW)


# ============================================================================
# Engine Fixtures
# ============================================================================

@pytest.fixture
def empty_catalog():
    """Catalog with nothing in it, so XP arithmetic in tests stays exact"""
    return Catalog()


@pytest.fixture
def orchestrator(fixed_clock, empty_catalog):
    return Orchestrator(clock=fixed_clock, catalog=empty_catalog)


@pytest.fixture
def state(orchestrator):
    """Fresh Life Explorer with no quests, items or achievements"""
    return orchestrator.create_character("char-1", "Test Hero")


@pytest.fixture
def character():
    return Character(id="char-1", name="Test Hero", created_at=NOW)


@pytest.fixture
def energy_pool():
    return ResourcePool(
        kind=ResourceKind.ENERGY,
        current=80,
        max=100,
        regen_rate_per_hour=5,
        last_updated=NOW,
    )


@pytest.fixture
def sample_quest():
    """Two required objectives (10 + 20 XP) and one optional (5 XP)"""
    return quest_system.create_quest(
        name="Write quarterly report",
        xp_reward=100,
        gold_reward=20,
        objectives=[
            ("Outline", True, 10),
            ("Draft", True, 20),
            ("Polish", False, 5),
        ],
        quest_id="quest-1",
        now=NOW,
    )


@pytest.fixture
def make_item():
    """Factory for recurring items"""
    def _make(
        item_id="water",
        kind=RecurringKind.BASIC_NEED,
        cadence=24,
        hours_ago=None,
        streak=0,
        best=None,
        **kwargs
    ):
        return RecurringItem(
            id=item_id,
            name=kwargs.pop("name", item_id.replace("_", " ").title()),
            kind=kind,
            ideal_cadence_hours=cadence,
            last_completed_at=NOW - timedelta(hours=hours_ago) if hours_ago is not None else None,
            streak_count=streak,
            best_streak=best if best is not None else streak,
            **kwargs
        )
    return _make


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_db_cursor():
    """Mock database cursor with standard query results"""
    cursor = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])
    cursor.execute = AsyncMock()
    cursor.rowcount = 0
    return cursor


@pytest.fixture
def mock_database(mock_db_cursor):
    """Database stand-in whose connection()/cursor() yield mocks"""
    conn = MagicMock()
    conn.commit = AsyncMock()

    cursor_cm = MagicMock()
    cursor_cm.__aenter__ = AsyncMock(return_value=mock_db_cursor)
    cursor_cm.__aexit__ = AsyncMock(return_value=False)
    conn.cursor = MagicMock(return_value=cursor_cm)

    @asynccontextmanager
    async def connection():
        yield conn

    database = MagicMock()
    database.connection = connection
    database.conn = conn
    return database
