"""Reward payload models

Rewards are a closed tagged union keyed on `kind`. An unknown kind, an
unknown stat or an unknown resource fails validation when the quest or
catalog entry is built, not when the reward is paid out.
"""
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from lifequest.models.character import StatName
from lifequest.models.resource import ResourceKind


class XpReward(BaseModel):
    """Extra experience on top of the quest's own xp_reward"""
    kind: Literal["xp"] = "xp"
    amount: int = Field(gt=0)


class ResourceReward(BaseModel):
    """Signed change to one resource pool (negative spends)"""
    kind: Literal["resource"] = "resource"
    resource: ResourceKind
    amount: int


class StatBoostReward(BaseModel):
    """Permanent change to a character stat"""
    kind: Literal["stat_boost"] = "stat_boost"
    stat: StatName
    amount: int


class SkillTreeCredit(BaseModel):
    """Experience credited to a named skill tree"""
    kind: Literal["skill_tree"] = "skill_tree"
    tree: str = Field(min_length=1)
    xp: int = Field(gt=0)


Reward = Annotated[
    Union[XpReward, ResourceReward, StatBoostReward, SkillTreeCredit],
    Field(discriminator="kind"),
]
