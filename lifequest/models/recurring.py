"""Recurring item models (basic needs, daily quests, reflections)"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from lifequest.models.reward import ResourceReward


class RecurringKind(str, Enum):
    BASIC_NEED = "basic_need"
    DAILY_QUEST = "daily_quest"
    REFLECTION = "reflection"


class NeedCategory(str, Enum):
    HYGIENE = "hygiene"
    NUTRITION = "nutrition"
    HYDRATION = "hydration"
    MOVEMENT = "movement"
    MEDICATION = "medication"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecurringItem(BaseModel):
    """
    Anything completed on a cadence and tracked as a streak.

    Only raw timestamps and counters are stored; overdue status and the
    effective streak are derived at read time from last_completed_at.
    """
    id: str
    name: str = Field(min_length=1)
    kind: RecurringKind
    ideal_cadence_hours: float = Field(gt=0)
    last_completed_at: Optional[datetime] = None
    streak_count: int = Field(default=0, ge=0)
    best_streak: int = Field(default=0, ge=0)
    completion_count: int = Field(default=0, ge=0)
    xp_reward: int = Field(default=3, ge=0)
    category: Optional[NeedCategory] = None
    priority: Priority = Priority.MEDIUM
    resource_rewards: List[ResourceReward] = Field(default_factory=list)
    wisdom_points: int = Field(default=0, ge=0)  # reflections only

    @model_validator(mode="after")
    def check_best_streak(self) -> "RecurringItem":
        if self.best_streak < self.streak_count:
            raise ValueError("best_streak cannot be lower than streak_count")
        return self
