"""Consolidated event results returned by the orchestrator"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from lifequest.models.character import StatName
from lifequest.models.resource import ResourceChange


class UnlockedAchievement(BaseModel):
    """Achievement unlocked during an event"""
    achievement_id: str
    name: str
    xp_reward: int
    unlocked_at: datetime


class EventResult(BaseModel):
    """Fields every orchestrated event reports"""
    character_id: str
    xp_awarded: int = 0  # everything, achievement XP included
    leveled_up: bool = False
    levels_gained: int = 0
    new_level: Optional[int] = None  # only set on level up
    level: int = 1
    total_xp: int = 0
    resource_deltas: List[ResourceChange] = Field(default_factory=list)
    achievements_unlocked: List[UnlockedAchievement] = Field(default_factory=list)
    achievement_xp: int = 0
    message: str = ""


class ObjectiveCompletionResult(EventResult):
    quest_id: str
    objective_id: str
    objective_xp: int
    quest_completed: bool = False
    quest_xp: Optional[int] = None
    gold_awarded: int = 0


class QuestCompletionResult(EventResult):
    quest_id: str
    quest_xp: int
    gold_awarded: int = 0


class NeedCompletionResult(EventResult):
    need_id: str
    xp: int
    new_streak: int
    best_streak: int
    streak_outcome: str  # started / continued / reset
    milestone_bonus: int = 0
    is_overdue: bool = False


class BuffActivationResult(EventResult):
    buff_id: str
    xp: int
    stacked: bool
    stack_count: int
    expires_at: datetime
    combos_achieved: List[str] = Field(default_factory=list)
    combo_xp: int = 0


class DailyQuestCompletionResult(EventResult):
    item_id: str
    xp: int
    base_xp: int
    streak_bonus: int
    new_streak: int
    best_streak: int
    wisdom_points: int = 0


class QuestExpiryResult(EventResult):
    failed_quest_ids: List[str] = Field(default_factory=list)


class CharacterSheet(BaseModel):
    """Read-only view of the character at one instant"""
    character_id: str
    name: str
    character_class: str
    level: int
    total_xp: int
    xp_in_current_level: int
    xp_to_next_level: int
    next_level_xp: int
    progress_percent: float
    gold: int
    wisdom_points: int
    stats: Dict[StatName, int]
    resources: Dict[str, Dict[str, int]]
    active_buffs: List[Dict[str, object]]
    overdue_items: List[str]
    achievements_unlocked: int
    achievements_total: int
