"""Global test fixtures and utilities for progression engine tests"""
import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime, timedelta, timezone

from src.gamification.level_curve import tier_for
from src.gamification.store import InMemoryProgressionStore
from src.models.progression import (
    ActionKind,
    ActivityCounters,
    ProgressionSnapshot,
    RewardEvent,
    StreakState,
)


# ============================================================================
# User Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "123456789"


# ============================================================================
# Time Fixtures
# ============================================================================

@pytest.fixture
def fixed_now():
    """Fixed aware timestamp used as the award clock"""
    return datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_today(fixed_now):
    """Calendar day matching fixed_now"""
    return fixed_now.date()


@pytest.fixture
def fixed_clock(fixed_now):
    """Clock callable returning fixed_now"""
    return lambda: fixed_now


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def memory_store(test_user_id):
    """In-memory store with the test user registered and no progression yet"""
    store = InMemoryProgressionStore()
    store.register_user(test_user_id)
    return store


@pytest.fixture
def no_sleep():
    """Awaitable sleep replacement for retry loops"""
    return AsyncMock()


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
    cursor.rowcount = 1
    return cursor


@pytest.fixture
def mock_db(mock_db_cursor):
    """
    Mock for db.connection() yielding a connection whose cursor() yields
    mock_db_cursor
    """
    mock_conn = MagicMock()
    mock_conn.commit = AsyncMock()
    mock_conn.cursor.return_value.__aenter__.return_value = mock_db_cursor

    connection = MagicMock()
    connection.return_value.__aenter__.return_value = mock_conn
    return connection


# ============================================================================
# Snapshot Helpers
# ============================================================================

def make_snapshot(
    amounts=(),
    action_kind=ActionKind.REVIEW_INTERACTION,
    start=datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc),
    **overrides
) -> ProgressionSnapshot:
    """
    Build a consistent snapshot whose score is the sum of `amounts`

    Each amount becomes one history entry, one minute apart.
    """
    history = [
        RewardEvent(amount=amount, action_kind=action_kind, timestamp=start + timedelta(minutes=i))
        for i, amount in enumerate(amounts)
    ]
    score = sum(amounts)
    fields = {
        "score": score,
        "tier": tier_for(score),
        "streak": StreakState(),
        "activity_counters": ActivityCounters(),
        "earned_achievements": [],
        "history": history,
    }
    fields.update(overrides)
    return ProgressionSnapshot(**fields)


@pytest.fixture
def snapshot_factory():
    """Factory fixture for consistent snapshots"""
    return make_snapshot
