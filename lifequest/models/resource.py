"""Resource pool models"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class ResourceKind(str, Enum):
    """The four regenerating pools every character owns"""
    ENERGY = "energy"
    FOCUS = "focus"
    MOTIVATION = "motivation"
    SPOONS = "spoons"


class ResourcePool(BaseModel):
    """A depletable, regenerating pool. Always 0 <= current <= max."""
    kind: ResourceKind
    current: int = Field(ge=0)
    max: int = Field(ge=0)
    regen_rate_per_hour: int = Field(default=0, ge=0)
    last_updated: Optional[datetime] = None

    @model_validator(mode="after")
    def check_within_max(self) -> "ResourcePool":
        """Stored pools must already respect the cap"""
        if self.current > self.max:
            raise ValueError(
                f"{self.kind.value} current ({self.current}) exceeds max ({self.max})"
            )
        return self


class ResourceChange(BaseModel):
    """Before/after record of one pool mutation, returned to callers"""
    kind: ResourceKind
    before: int
    after: int
    requested: int  # signed amount the caller asked for
    reason: str = ""

    @property
    def delta(self) -> int:
        return self.after - self.before

    @property
    def clamped(self) -> bool:
        return self.delta != self.requested
