"""Unit tests for progression stores (src/gamification/store.py)"""
import psycopg
import pytest
from unittest.mock import AsyncMock, patch

from src.exceptions import ConnectionError, QueryError, RecordNotFoundError
from src.gamification.store import InMemoryProgressionStore, PostgresProgressionStore


# ============================================================================
# In-Memory Store Tests
# ============================================================================

@pytest.mark.asyncio
async def test_memory_load_without_document(memory_store, test_user_id):
    """Test a known user without progression loads as None"""
    assert await memory_store.load(test_user_id) is None


@pytest.mark.asyncio
async def test_memory_load_unknown_user():
    """Test an unknown user is NotFound"""
    store = InMemoryProgressionStore()

    with pytest.raises(RecordNotFoundError) as exc_info:
        await store.load("missing")

    assert exc_info.value.record_id == "missing"


@pytest.mark.asyncio
async def test_memory_create_only_if_absent(memory_store, test_user_id, snapshot_factory):
    """Test expected_version=None creates once"""
    snapshot = snapshot_factory(amounts=[10])

    assert await memory_store.conditional_write(test_user_id, None, snapshot) is True
    assert await memory_store.conditional_write(test_user_id, None, snapshot) is False

    stored = await memory_store.load(test_user_id)
    assert stored.version == 1


@pytest.mark.asyncio
async def test_memory_compare_and_swap(memory_store, test_user_id, snapshot_factory):
    """Test writes succeed only against the current version"""
    memory_store.seed(test_user_id, snapshot_factory(amounts=[10]), version=3)

    assert await memory_store.conditional_write(test_user_id, 2, snapshot_factory(amounts=[10, 5])) is False
    assert await memory_store.conditional_write(test_user_id, 3, snapshot_factory(amounts=[10, 5])) is True

    stored = await memory_store.load(test_user_id)
    assert stored.version == 4
    assert stored.data["score"] == 15
    assert memory_store.write_attempts == 2


@pytest.mark.asyncio
async def test_memory_load_returns_copy(memory_store, test_user_id, snapshot_factory):
    """Test callers cannot mutate stored state through a loaded document"""
    memory_store.seed(test_user_id, snapshot_factory(amounts=[10]))

    stored = await memory_store.load(test_user_id)
    stored.data["score"] = 999

    assert memory_store.get_snapshot(test_user_id).score == 10


# ============================================================================
# PostgreSQL Store Tests
# ============================================================================

@pytest.mark.asyncio
async def test_postgres_load_document(test_user_id):
    """Test a stored row becomes a StoredDocument"""
    row = {"user_id": test_user_id, "data": {"score": 15}, "version": 2}

    with patch('src.gamification.store.progression_queries.get_progression_document', AsyncMock(return_value=row)):
        stored = await PostgresProgressionStore().load(test_user_id)

    assert stored.data == {"score": 15}
    assert stored.version == 2


@pytest.mark.asyncio
async def test_postgres_load_user_without_progression(test_user_id):
    """Test a user row with no progression loads as None"""
    row = {"user_id": test_user_id, "data": None, "version": None}

    with patch('src.gamification.store.progression_queries.get_progression_document', AsyncMock(return_value=row)):
        assert await PostgresProgressionStore().load(test_user_id) is None


@pytest.mark.asyncio
async def test_postgres_load_unknown_user():
    """Test a missing user row is NotFound"""
    with patch('src.gamification.store.progression_queries.get_progression_document', AsyncMock(return_value=None)):
        with pytest.raises(RecordNotFoundError):
            await PostgresProgressionStore().load("missing")


@pytest.mark.asyncio
async def test_postgres_write_new_document_inserts(test_user_id, snapshot_factory):
    """Test a first write goes through the insert query"""
    insert = AsyncMock(return_value=True)
    update = AsyncMock()

    with patch('src.gamification.store.progression_queries.insert_progression_document', insert), \
         patch('src.gamification.store.progression_queries.update_progression_document', update):
        committed = await PostgresProgressionStore().conditional_write(test_user_id, None, snapshot_factory(amounts=[10]))

    assert committed is True
    assert insert.await_args[0][0] == test_user_id
    assert insert.await_args[0][1]["score"] == 10
    update.assert_not_awaited()


@pytest.mark.asyncio
async def test_postgres_write_existing_document_updates(test_user_id, snapshot_factory):
    """Test later writes go through the versioned update"""
    update = AsyncMock(return_value=False)

    with patch('src.gamification.store.progression_queries.update_progression_document', update):
        committed = await PostgresProgressionStore().conditional_write(test_user_id, 5, snapshot_factory())

    assert committed is False
    assert update.await_args[0][1] == 5


@pytest.mark.asyncio
async def test_postgres_connection_failure_wrapped(test_user_id):
    """Test driver connection errors become ConnectionError"""
    failing = AsyncMock(side_effect=psycopg.OperationalError("server closed the connection"))

    with patch('src.gamification.store.progression_queries.get_progression_document', failing):
        with pytest.raises(ConnectionError):
            await PostgresProgressionStore().load(test_user_id)


@pytest.mark.asyncio
async def test_postgres_query_failure_wrapped(test_user_id, snapshot_factory):
    """Test other driver errors become QueryError"""
    failing = AsyncMock(side_effect=psycopg.errors.UndefinedTable("relation does not exist"))

    with patch('src.gamification.store.progression_queries.update_progression_document', failing):
        with pytest.raises(QueryError):
            await PostgresProgressionStore().conditional_write(test_user_id, 1, snapshot_factory())
