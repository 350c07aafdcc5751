"""Achievement models for gamification"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class AchievementCategory(str, Enum):
    """Achievement categories"""
    SELF_CARE = "self_care"
    REFLECTION = "reflection"
    STREAK = "streak"
    COMBO = "combo"
    QUESTS = "quests"
    PROGRESSION = "progression"


class Rarity(str, Enum):
    """Achievement rarity"""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class ProgressCounter(str, Enum):
    """Named counters an achievement threshold can watch"""
    QUESTS_COMPLETED = "quests_completed"
    OBJECTIVES_COMPLETED = "objectives_completed"
    NEEDS_COMPLETED = "needs_completed"
    DAILY_QUESTS_COMPLETED = "daily_quests_completed"
    REFLECTIONS_COMPLETED = "reflections_completed"
    BUFFS_ACTIVATED = "buffs_activated"
    COMBOS_ACHIEVED = "combos_achieved"
    CHARACTER_LEVEL = "character_level"
    TOTAL_XP = "total_xp"
    BEST_STREAK = "best_streak"
    CURRENT_STREAK = "current_streak"
    REFLECTION_STREAK = "reflection_streak"


class Achievement(BaseModel):
    """Achievement with its progress. unlocked never goes back to False."""
    id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    category: AchievementCategory
    rarity: Rarity = Rarity.COMMON
    counter: ProgressCounter
    progress_current: int = Field(default=0, ge=0)
    progress_required: int = Field(default=1, ge=1)
    xp_reward: int = Field(default=0, ge=0)
    unlocked: bool = False
    unlocked_at: Optional[datetime] = None

    @property
    def percentage(self) -> int:
        if self.unlocked:
            return 100
        return min(100, int(self.progress_current * 100 / self.progress_required))
