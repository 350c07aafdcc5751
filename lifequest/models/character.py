"""Character-related Pydantic models"""
from datetime import datetime
from enum import Enum
from typing import Dict

from pydantic import BaseModel, Field

from lifequest.models.resource import ResourceKind
from lifequest.utils.datetime_helpers import now_utc


class CharacterClass(str, Enum):
    """Class tag chosen at onboarding; drives starting bonuses"""
    LIFE_EXPLORER = "Life Explorer"
    WELLNESS_WARRIOR = "Wellness Warrior"
    SOCIAL_BUTTERFLY = "Social Butterfly"
    CREATIVE_GENIUS = "Creative Genius"
    PRODUCTIVITY_MASTER = "Productivity Master"


class StatName(str, Enum):
    """Character stats that buffs and rewards may boost"""
    PRODUCTIVITY = "productivity"
    WELLNESS = "wellness"
    SOCIAL = "social"
    CREATIVITY = "creativity"
    LEARNING = "learning"
    ORGANIZATION = "organization"


STAT_BASE_VALUE = 50
STAT_MAX_VALUE = 100

# Class bonuses split by target: stats raise the base, resources raise pool size
CLASS_STAT_BONUSES: Dict[CharacterClass, Dict[StatName, int]] = {
    CharacterClass.LIFE_EXPLORER: {StatName.PRODUCTIVITY: 5, StatName.LEARNING: 10},
    CharacterClass.WELLNESS_WARRIOR: {StatName.WELLNESS: 15},
    CharacterClass.SOCIAL_BUTTERFLY: {StatName.SOCIAL: 15},
    CharacterClass.CREATIVE_GENIUS: {StatName.CREATIVITY: 20},
    CharacterClass.PRODUCTIVITY_MASTER: {StatName.PRODUCTIVITY: 20, StatName.ORGANIZATION: 10},
}

CLASS_RESOURCE_BONUSES: Dict[CharacterClass, Dict[ResourceKind, int]] = {
    CharacterClass.LIFE_EXPLORER: {},
    CharacterClass.WELLNESS_WARRIOR: {ResourceKind.ENERGY: 10},
    CharacterClass.SOCIAL_BUTTERFLY: {ResourceKind.MOTIVATION: 5},
    CharacterClass.CREATIVE_GENIUS: {ResourceKind.FOCUS: 5},
    CharacterClass.PRODUCTIVITY_MASTER: {},
}


class Character(BaseModel):
    """The single progression aggregate root. level is derived from total_xp."""
    id: str
    name: str = Field(min_length=1)
    character_class: CharacterClass = CharacterClass.LIFE_EXPLORER
    level: int = Field(default=1, ge=1)
    total_xp: int = Field(default=0, ge=0)
    gold: int = Field(default=0, ge=0)
    wisdom_points: int = Field(default=0, ge=0)
    skill_tree_xp: Dict[str, int] = Field(default_factory=dict)
    stat_bonuses: Dict[StatName, int] = Field(default_factory=dict)  # permanent, from rewards
    created_at: datetime = Field(default_factory=now_utc)

    def base_stats(self) -> Dict[StatName, int]:
        """Stats before buffs: default base + class bonus + reward bonuses, capped"""
        class_bonus = CLASS_STAT_BONUSES.get(self.character_class, {})
        return {
            stat: max(0, min(
                STAT_MAX_VALUE,
                STAT_BASE_VALUE + class_bonus.get(stat, 0) + self.stat_bonuses.get(stat, 0),
            ))
            for stat in StatName
        }
