"""
In-memory state store

Keeps one serialized snapshot per character. Loads hand out fresh copies,
so nothing a caller does to a loaded state leaks back into the store until
save() is called. State is lost when the process exits.
"""

import logging
from typing import Dict, List

from lifequest.exceptions import NotFoundError
from lifequest.models.state import CharacterState

logger = logging.getLogger(__name__)


class InMemoryStateStore:
    """Process-local StateStore"""

    def __init__(self):
        self._states: Dict[str, str] = {}
        logger.info("InMemoryStateStore initialized - character state is NOT persisted across restarts")

    async def load(self, character_id: str) -> CharacterState:
        raw = self._states.get(character_id)
        if raw is None:
            raise NotFoundError(
                f"Character {character_id} not found",
                record_type="Character",
                record_id=character_id,
                character_id=character_id,
            )
        return CharacterState.model_validate_json(raw)

    async def save(self, character_id: str, state: CharacterState) -> None:
        self._states[character_id] = state.model_dump_json()
        logger.debug(f"Saved state for character {character_id} to memory store")

    async def exists(self, character_id: str) -> bool:
        return character_id in self._states

    async def delete(self, character_id: str) -> bool:
        return self._states.pop(character_id, None) is not None

    def character_ids(self) -> List[str]:
        return sorted(self._states)
