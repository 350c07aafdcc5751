"""Quest and objective models"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from lifequest.models.reward import Reward


class QuestType(str, Enum):
    MAIN = "main"
    SIDE = "side"
    DAILY = "daily"
    WEEKLY = "weekly"
    EPIC = "epic"


class Difficulty(str, Enum):
    TRIVIAL = "trivial"
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"
    LEGENDARY = "legendary"


class QuestStatus(str, Enum):
    """available -> active -> completed, with failed/abandoned exits"""
    AVAILABLE = "available"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    ABANDONED = "abandoned"


TERMINAL_STATUSES = frozenset({QuestStatus.COMPLETED, QuestStatus.FAILED, QuestStatus.ABANDONED})


class Objective(BaseModel):
    """One ordered step of a quest. quest_id never changes after creation."""
    id: str
    quest_id: str = Field(frozen=True)
    text: str = Field(min_length=1)
    order: int = Field(default=1, ge=1)
    is_required: bool = True
    is_completed: bool = False
    xp_reward: int = Field(default=10, ge=0)
    completed_at: Optional[datetime] = None


class Quest(BaseModel):
    """Quest with its objectives. completed_at is set iff status is completed."""
    id: str
    name: str = Field(min_length=1)
    description: Optional[str] = None
    quest_type: QuestType = QuestType.SIDE
    difficulty: Difficulty = Difficulty.NORMAL
    status: QuestStatus = QuestStatus.AVAILABLE
    xp_reward: int = Field(default=50, ge=0)
    gold_reward: Optional[int] = Field(default=None, ge=0)
    energy_cost: int = Field(default=0, ge=0)  # spent from energy when the quest completes
    rewards: List[Reward] = Field(default_factory=list)
    time_limit_minutes: Optional[int] = Field(default=None, gt=0)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    objectives: List[Objective] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_consistency(self) -> "Quest":
        if (self.completed_at is not None) != (self.status == QuestStatus.COMPLETED):
            raise ValueError("completed_at must be set exactly when status is completed")
        foreign = [obj.id for obj in self.objectives if obj.quest_id != self.id]
        if foreign:
            raise ValueError(f"Objectives {foreign} belong to another quest")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def get_objective(self, objective_id: str) -> Optional[Objective]:
        for objective in self.objectives:
            if objective.id == objective_id:
                return objective
        return None

    def required_objectives(self) -> List[Objective]:
        return [obj for obj in self.objectives if obj.is_required]

    def remaining_required(self) -> List[Objective]:
        """Required objectives still open, in objective order"""
        remaining = [obj for obj in self.required_objectives() if not obj.is_completed]
        return sorted(remaining, key=lambda obj: obj.order)
