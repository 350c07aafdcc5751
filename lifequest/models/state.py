"""Character state aggregate

Everything the engine mutates for one character lives in a single
CharacterState so an event can be applied to a copy and committed (or
discarded) as a whole.
"""
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from lifequest.models.achievement import Achievement
from lifequest.models.buff import Buff, BuffCombo
from lifequest.models.character import Character
from lifequest.models.quest import Quest
from lifequest.models.recurring import RecurringItem
from lifequest.models.resource import ResourceKind, ResourcePool


class LifetimeTotals(BaseModel):
    """Counters that cannot be rebuilt once housekeeping purges old buffs"""
    buffs_activated: int = Field(default=0, ge=0)
    combos_achieved: int = Field(default=0, ge=0)


class CharacterState(BaseModel):
    """Complete engine state for one character"""
    character: Character
    resources: Dict[ResourceKind, ResourcePool]
    quests: Dict[str, Quest] = Field(default_factory=dict)
    recurring: Dict[str, RecurringItem] = Field(default_factory=dict)
    buffs: Dict[str, Buff] = Field(default_factory=dict)
    combos: Dict[str, BuffCombo] = Field(default_factory=dict)
    achievements: Dict[str, Achievement] = Field(default_factory=dict)
    totals: LifetimeTotals = Field(default_factory=LifetimeTotals)
    updated_at: Optional[datetime] = None

    @property
    def character_id(self) -> str:
        return self.character.id
