"""
Persistence boundary

The engine is storage-agnostic; anything implementing StateStore can hold
character state. Two implementations ship:
- InMemoryStateStore (lifequest.db.memory_store)
- PostgresStateStore (lifequest.db.queries.character_state), JSONB via psycopg
"""

from typing import Protocol

from lifequest.models.state import CharacterState


class StateStore(Protocol):
    async def load(self, character_id: str) -> CharacterState:
        """Load a character's state. Raises NotFoundError if unknown."""
        ...

    async def save(self, character_id: str, state: CharacterState) -> None:
        ...

    async def exists(self, character_id: str) -> bool:
        ...
