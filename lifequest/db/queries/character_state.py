"""Character state queries

The whole CharacterState aggregate is one JSONB document per character.
Events always rewrite the full aggregate, so there is no partial update path.
"""
import logging
from typing import Optional

import psycopg
import pydantic
from psycopg.types.json import Jsonb

from lifequest.db.connection import Database, db
from lifequest.exceptions import NotFoundError, wrap_external_exception
from lifequest.models.state import CharacterState

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS character_state (
    character_id TEXT PRIMARY KEY,
    state JSONB NOT NULL,
    level INTEGER NOT NULL DEFAULT 1,
    total_xp INTEGER NOT NULL DEFAULT 0,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""

SELECT_STATE_SQL = "SELECT state FROM character_state WHERE character_id = %s"

UPSERT_STATE_SQL = """
INSERT INTO character_state (character_id, state, level, total_xp, updated_at)
VALUES (%s, %s, %s, %s, CURRENT_TIMESTAMP)
ON CONFLICT (character_id) DO UPDATE
SET state = EXCLUDED.state,
    level = EXCLUDED.level,
    total_xp = EXCLUDED.total_xp,
    updated_at = CURRENT_TIMESTAMP
"""

DELETE_STATE_SQL = "DELETE FROM character_state WHERE character_id = %s"


async def ensure_schema(database: Database = db) -> None:
    """Create the character_state table if it does not exist"""
    try:
        async with database.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(CREATE_TABLE_SQL)
            await conn.commit()
    except psycopg.Error as e:
        raise wrap_external_exception(e, operation="ensure_schema") from e
    logger.info("character_state table ready")


async def load_character_state(character_id: str, database: Database = db) -> Optional[CharacterState]:
    """
    Load a character's state

    Returns:
        CharacterState, or None if the character has no row
    """
    try:
        async with database.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(SELECT_STATE_SQL, (character_id,))
                row = await cur.fetchone()
    except psycopg.Error as e:
        raise wrap_external_exception(
            e, operation="load_character_state", character_id=character_id
        ) from e

    if not row:
        return None

    try:
        return CharacterState.model_validate(row["state"])
    except pydantic.ValidationError as e:
        raise wrap_external_exception(
            e, operation="load_character_state", character_id=character_id
        ) from e


async def save_character_state(character_id: str, state: CharacterState, database: Database = db) -> None:
    """Insert or replace a character's state"""
    try:
        async with database.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    UPSERT_STATE_SQL,
                    (
                        character_id,
                        Jsonb(state.model_dump(mode="json")),
                        state.character.level,
                        state.character.total_xp,
                    )
                )
            await conn.commit()
    except psycopg.Error as e:
        raise wrap_external_exception(
            e, operation="save_character_state", character_id=character_id
        ) from e

    logger.debug(f"Saved state for character {character_id} (level {state.character.level})")


async def delete_character_state(character_id: str, database: Database = db) -> bool:
    """Delete a character's state. Returns True if a row was removed."""
    try:
        async with database.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(DELETE_STATE_SQL, (character_id,))
                deleted = cur.rowcount > 0
            await conn.commit()
    except psycopg.Error as e:
        raise wrap_external_exception(
            e, operation="delete_character_state", character_id=character_id
        ) from e

    if deleted:
        logger.info(f"Deleted state for character {character_id}")
    return deleted


class PostgresStateStore:
    """StateStore backed by the character_state table"""

    def __init__(self, database: Database = db):
        self.database = database

    async def load(self, character_id: str) -> CharacterState:
        state = await load_character_state(character_id, self.database)
        if state is None:
            raise NotFoundError(
                f"Character {character_id} not found",
                record_type="Character",
                record_id=character_id,
                character_id=character_id,
            )
        return state

    async def save(self, character_id: str, state: CharacterState) -> None:
        await save_character_state(character_id, state, self.database)

    async def exists(self, character_id: str) -> bool:
        return await load_character_state(character_id, self.database) is not None

    async def delete(self, character_id: str) -> bool:
        return await delete_character_state(character_id, self.database)
