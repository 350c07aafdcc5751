"""Buff models"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from lifequest.models.character import StatName


class BuffKind(str, Enum):
    HYGIENE = "hygiene"
    NUTRITION = "nutrition"
    HYDRATION = "hydration"
    MOVEMENT = "movement"
    MEDICATION = "medication"


class Buff(BaseModel):
    """
    A timed self-care effect.

    A buff whose expires_at is not in the future is inactive no matter what
    is_active says; is_active only records an explicit deactivation.
    """
    id: str
    name: str = Field(min_length=1)
    kind: BuffKind
    stat_boost: Dict[StatName, int] = Field(default_factory=dict)
    stack_count: int = Field(default=1, ge=1)
    duration_minutes: int = Field(gt=0)
    xp_reward: int = Field(default=0, ge=0)
    activated_at: datetime
    expires_at: datetime
    is_active: bool = True

    def is_active_at(self, now: datetime) -> bool:
        return self.is_active and self.expires_at > now


class BuffCombo(BaseModel):
    """Bonus for having every required buff kind active at once"""
    id: str
    name: str = Field(min_length=1)
    required_kinds: List[BuffKind] = Field(min_length=2)
    bonus_xp: int = Field(default=50, ge=0)
    times_achieved: int = Field(default=0, ge=0)
    last_achieved_at: Optional[datetime] = None
