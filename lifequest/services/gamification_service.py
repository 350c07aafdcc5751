"""
GamificationService - per-character event processing

Wraps the Orchestrator with persistence: every event is
load -> orchestrate -> save under one asyncio.Lock per character, so events
for the same character are serialized and different characters never wait
on each other. State is saved only when the event succeeded.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple

from lifequest.db import StateStore
from lifequest.exceptions import ValidationError
from lifequest.gamification import achievement_system
from lifequest.gamification.orchestrator import Orchestrator
from lifequest.models.buff import BuffKind
from lifequest.models.character import CharacterClass, StatName
from lifequest.models.quest import Quest
from lifequest.models.resource import ResourceChange, ResourceKind
from lifequest.models.results import (
    BuffActivationResult,
    CharacterSheet,
    DailyQuestCompletionResult,
    NeedCompletionResult,
    ObjectiveCompletionResult,
    QuestCompletionResult,
    QuestExpiryResult,
)
from lifequest.models.state import CharacterState

logger = logging.getLogger(__name__)


class GamificationService:
    """
    Service for character progression.

    Responsibilities:
    - Serializing events per character
    - Loading and saving character state
    - Delegating game rules to the Orchestrator
    """

    def __init__(self, store: StateStore, orchestrator: Optional[Orchestrator] = None):
        """
        Initialize GamificationService.

        Args:
            store: StateStore holding character state
            orchestrator: Orchestrator to apply events (default clock and catalog if omitted)
        """
        self.store = store
        self.orchestrator = orchestrator or Orchestrator()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        logger.debug("GamificationService initialized")

    @asynccontextmanager
    async def _character_lock(self, character_id: str):
        """
        Hold the character's lock

        Locks are reference counted and dropped once no task holds or waits
        on them, so _locks only contains characters with events in flight.
        """
        lock = self._locks.get(character_id)
        if lock is None:
            lock = self._locks[character_id] = asyncio.Lock()
        self._lock_users[character_id] = self._lock_users.get(character_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[character_id] -= 1
            if self._lock_users[character_id] == 0:
                del self._lock_users[character_id]
                del self._locks[character_id]

    async def _apply(
        self,
        character_id: str,
        operation: str,
        event: Callable[..., Tuple[CharacterState, Any]],
        *args,
        **kwargs
    ) -> Any:
        """Run one orchestrator event for a character and persist the outcome"""
        async with self._character_lock(character_id):
            state = await self.store.load(character_id)
            new_state, result = event(state, *args, **kwargs)
            await self.store.save(character_id, new_state)

        logger.debug(f"[{character_id}] {operation} committed")
        return result

    # ==========================================
    # Characters
    # ==========================================

    async def create_character(
        self,
        character_id: str,
        name: str,
        character_class: CharacterClass = CharacterClass.LIFE_EXPLORER
    ) -> CharacterState:
        async with self._character_lock(character_id):
            if await self.store.exists(character_id):
                raise ValidationError(
                    f"Character {character_id} already exists",
                    field="character_id",
                    value=character_id,
                )
            state = self.orchestrator.create_character(character_id, name, character_class)
            await self.store.save(character_id, state)
        return state

    async def get_state(self, character_id: str) -> CharacterState:
        return await self.store.load(character_id)

    async def get_character_sheet(self, character_id: str) -> CharacterSheet:
        state = await self.store.load(character_id)
        return self.orchestrator.character_sheet(state)

    async def get_achievements(self, character_id: str) -> Dict[str, Any]:
        """
        Achievement overview

        Returns:
            {
                'total': int,
                'unlocked': int,
                'xp_earned': int,
                'completion_percentage': int,
                'in_progress': [Achievement]
            }
        """
        state = await self.store.load(character_id)
        return achievement_system.achievement_summary(state.achievements)

    # ==========================================
    # Events
    # ==========================================

    async def complete_objective(
        self, character_id: str, quest_id: str, objective_id: str
    ) -> ObjectiveCompletionResult:
        return await self._apply(
            character_id, "complete_objective", self.orchestrator.complete_objective, quest_id, objective_id
        )

    async def complete_quest(self, character_id: str, quest_id: str) -> QuestCompletionResult:
        return await self._apply(character_id, "complete_quest", self.orchestrator.complete_quest, quest_id)

    async def complete_need(self, character_id: str, need_id: str) -> NeedCompletionResult:
        return await self._apply(character_id, "complete_need", self.orchestrator.complete_need, need_id)

    async def complete_daily_quest(self, character_id: str, item_id: str) -> DailyQuestCompletionResult:
        return await self._apply(
            character_id, "complete_daily_quest", self.orchestrator.complete_daily_quest, item_id
        )

    async def activate_buff(
        self,
        character_id: str,
        name: str,
        kind: BuffKind,
        stat_boost: Optional[Dict[StatName, int]] = None,
        duration_minutes: Optional[int] = None
    ) -> BuffActivationResult:
        return await self._apply(
            character_id,
            "activate_buff",
            self.orchestrator.activate_buff,
            name,
            kind,
            stat_boost=stat_boost,
            duration_minutes=duration_minutes,
        )

    async def deactivate_buff(self, character_id: str, buff_id: str) -> None:
        await self._apply(
            character_id,
            "deactivate_buff",
            lambda state: (self.orchestrator.deactivate_buff(state, buff_id), None),
        )

    async def add_quest(self, character_id: str, quest: Quest) -> Quest:
        await self._apply(
            character_id,
            "add_quest",
            lambda state: (self.orchestrator.add_quest(state, quest), None),
        )
        return quest

    async def add_quest_from_template(self, character_id: str, template_key: str) -> Quest:
        return await self._apply(
            character_id, "add_quest_from_template", self.orchestrator.add_quest_from_template, template_key
        )

    async def start_quest(self, character_id: str, quest_id: str) -> Quest:
        return await self._apply(character_id, "start_quest", self.orchestrator.start_quest, quest_id)

    async def abandon_quest(self, character_id: str, quest_id: str) -> Quest:
        return await self._apply(character_id, "abandon_quest", self.orchestrator.abandon_quest, quest_id)

    async def expire_quests(self, character_id: str) -> QuestExpiryResult:
        return await self._apply(character_id, "expire_quests", self.orchestrator.expire_quests)

    async def spend_resource(self, character_id: str, kind: ResourceKind, amount: int) -> ResourceChange:
        return await self._apply(character_id, "spend_resource", self.orchestrator.spend_resource, kind, amount)

    async def gain_resource(self, character_id: str, kind: ResourceKind, amount: int) -> ResourceChange:
        return await self._apply(character_id, "gain_resource", self.orchestrator.gain_resource, kind, amount)

    async def regenerate_resources(self, character_id: str) -> List[ResourceChange]:
        return await self._apply(character_id, "regenerate_resources", self.orchestrator.regenerate_resources)

    async def housekeeping(self, character_id: str) -> int:
        """Purge expired buffs and fail timed-out quests. Returns buffs purged."""
        purged = await self._apply(character_id, "housekeeping", self.orchestrator.housekeeping)
        await self.expire_quests(character_id)
        return purged
