"""
Database queries

Module organization:
- character_state.py: character state aggregate stored as JSONB
"""

from lifequest.db.queries.character_state import (
    ensure_schema,
    load_character_state,
    save_character_state,
    delete_character_state,
    PostgresStateStore,
)

__all__ = [
    "ensure_schema",
    "load_character_state",
    "save_character_state",
    "delete_character_state",
    "PostgresStateStore",
]
