"""Unit tests for the state stores (memory and PostgreSQL)"""
import pytest
import psycopg
from psycopg.types.json import Jsonb

from lifequest.db.memory_store import InMemoryStateStore
from lifequest.db.queries.character_state import (
    CREATE_TABLE_SQL,
    PostgresStateStore,
    delete_character_state,
    ensure_schema,
)
from lifequest.exceptions import ConnectionError, DatabaseError, NotFoundError, QueryError


# ============================================================================
# In-memory store
# ============================================================================

@pytest.mark.asyncio
async def test_memory_store_round_trip(state):
    store = InMemoryStateStore()

    await store.save("char-1", state)

    assert await store.exists("char-1")
    assert await store.load("char-1") == state
    assert store.character_ids() == ["char-1"]


@pytest.mark.asyncio
async def test_memory_store_hands_out_copies(state):
    store = InMemoryStateStore()
    await store.save("char-1", state)

    loaded = await store.load("char-1")
    loaded.character.gold = 999

    assert (await store.load("char-1")).character.gold == 0


@pytest.mark.asyncio
async def test_memory_store_missing_and_delete(state):
    store = InMemoryStateStore()

    with pytest.raises(NotFoundError):
        await store.load("char-1")

    await store.save("char-1", state)
    assert await store.delete("char-1") is True
    assert await store.delete("char-1") is False
    assert await store.exists("char-1") is False


# ============================================================================
# PostgreSQL store
# ============================================================================

@pytest.mark.asyncio
async def test_postgres_load_missing_row(mock_database):
    store = PostgresStateStore(mock_database)

    with pytest.raises(NotFoundError):
        await store.load("char-1")

    assert await store.exists("char-1") is False


@pytest.mark.asyncio
async def test_postgres_load_row(mock_database, mock_db_cursor, state):
    mock_db_cursor.fetchone.return_value = {"state": state.model_dump(mode="json")}
    store = PostgresStateStore(mock_database)

    loaded = await store.load("char-1")

    assert loaded == state
    query, params = mock_db_cursor.execute.call_args.args
    assert "SELECT state FROM character_state" in query
    assert params == ("char-1",)


@pytest.mark.asyncio
async def test_postgres_save_upserts_jsonb(mock_database, mock_db_cursor, state):
    store = PostgresStateStore(mock_database)

    await store.save("char-1", state)

    query, params = mock_db_cursor.execute.call_args.args
    assert "ON CONFLICT (character_id) DO UPDATE" in query
    assert params[0] == "char-1"
    assert isinstance(params[1], Jsonb)
    assert params[2:] == (1, 0)
    mock_database.conn.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_postgres_delete(mock_database, mock_db_cursor):
    mock_db_cursor.rowcount = 1

    assert await delete_character_state("char-1", mock_database) is True


@pytest.mark.asyncio
async def test_ensure_schema(mock_database, mock_db_cursor):
    await ensure_schema(mock_database)

    mock_db_cursor.execute.assert_awaited_once_with(CREATE_TABLE_SQL)
    mock_database.conn.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_operational_error_becomes_connection_error(mock_database, mock_db_cursor):
    mock_db_cursor.execute.side_effect = psycopg.OperationalError("server closed the connection")

    with pytest.raises(ConnectionError) as exc_info:
        await PostgresStateStore(mock_database).load("char-1")

    assert exc_info.value.operation == "load_character_state"
    assert isinstance(exc_info.value.cause, psycopg.OperationalError)


@pytest.mark.asyncio
async def test_query_error_wrapped(mock_database, mock_db_cursor, state):
    mock_db_cursor.execute.side_effect = psycopg.errors.UndefinedTable("relation does not exist")

    with pytest.raises(QueryError) as exc_info:
        await PostgresStateStore(mock_database).save("char-1", state)

    assert exc_info.value.character_id == "char-1"


@pytest.mark.asyncio
async def test_corrupt_row_raises_database_error(mock_database, mock_db_cursor):
    mock_db_cursor.fetchone.return_value = {"state": {"character": {"id": "char-1"}}}

    with pytest.raises(DatabaseError):
        await PostgresStateStore(mock_database).load("char-1")
