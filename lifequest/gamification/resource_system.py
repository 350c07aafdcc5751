"""
Resource Ledger

Pure functions over the four resource pools (energy, focus, motivation,
spoons). Every operation returns a new pool and clamps into [0, max]
instead of raising: overdraft floors at zero, gains stop at the cap.

Regeneration is a function of elapsed hours only. regenerate_since() is the
wall-clock helper; it advances last_updated by the whole hours it credited
so fractional progress carries over to the next call.
"""

from datetime import datetime, timedelta
from math import floor
from typing import Dict, Optional, Tuple
import logging

from lifequest.exceptions import ValidationError
from lifequest.models.character import CharacterClass, CLASS_RESOURCE_BONUSES
from lifequest.models.resource import ResourceChange, ResourceKind, ResourcePool
from lifequest.utils.datetime_helpers import hours_between

logger = logging.getLogger(__name__)

# Starting pools for a new character: (current, max, regen per hour)
DEFAULT_RESOURCES: Dict[ResourceKind, Tuple[int, int, int]] = {
    ResourceKind.ENERGY: (80, 100, 5),
    ResourceKind.FOCUS: (70, 100, 3),
    ResourceKind.MOTIVATION: (85, 100, 2),
    ResourceKind.SPOONS: (8, 12, 1),
}


def _check_amount(amount: int, field: str = "amount") -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise ValidationError("Amount must be a non-negative integer", field=field, value=amount)


def _clamp(value: int, maximum: int) -> int:
    return max(0, min(maximum, value))


def spend(pool: ResourcePool, amount: int) -> ResourcePool:
    """Subtract amount, flooring at zero"""
    _check_amount(amount)
    new_current = _clamp(pool.current - amount, pool.max)
    if pool.current - amount < 0:
        logger.debug(
            f"Spending {amount} {pool.kind.value} with only {pool.current} left; clamped to 0"
        )
    return pool.model_copy(update={"current": new_current})


def gain(pool: ResourcePool, amount: int) -> ResourcePool:
    """Add amount, capping at max"""
    _check_amount(amount)
    return pool.model_copy(update={"current": _clamp(pool.current + amount, pool.max)})


def set_max(pool: ResourcePool, new_max: int) -> ResourcePool:
    """Change the cap; current is pulled down if it would exceed it"""
    _check_amount(new_max, field="new_max")
    return pool.model_copy(update={"max": new_max, "current": min(pool.current, new_max)})


def set_current(pool: ResourcePool, value: int) -> ResourcePool:
    """Overwrite current, clamped into [0, max]"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Value must be an integer", field="value", value=value)
    return pool.model_copy(update={"current": _clamp(value, pool.max)})


def regenerate(pool: ResourcePool, elapsed_hours: float) -> ResourcePool:
    """
    Credit floor(regen_rate_per_hour * elapsed_hours), capped at max

    Args:
        pool: Pool to regenerate
        elapsed_hours: Hours since the caller's last update (>= 0)

    Raises:
        ValidationError: elapsed_hours is negative
    """
    if elapsed_hours < 0:
        raise ValidationError(
            "Elapsed hours cannot be negative", field="elapsed_hours", value=elapsed_hours
        )
    credited = floor(pool.regen_rate_per_hour * elapsed_hours)
    return pool.model_copy(update={"current": _clamp(pool.current + credited, pool.max)})


def regenerate_since(pool: ResourcePool, now: datetime) -> ResourcePool:
    """
    Regenerate for the time elapsed since pool.last_updated

    A pool that has never been stamped is stamped with now and not credited.
    last_updated moves forward only by the time that produced whole units,
    so partial hours are not thrown away.
    """
    if pool.last_updated is None:
        return pool.model_copy(update={"last_updated": now})

    elapsed = hours_between(pool.last_updated, now)
    if elapsed <= 0 or pool.regen_rate_per_hour == 0:
        return pool

    regenerated = regenerate(pool, elapsed)
    units = floor(pool.regen_rate_per_hour * elapsed)
    if units == 0:
        return pool

    if regenerated.current >= pool.max:
        # Full pool: nothing left to carry over
        stamp = now
    else:
        stamp = pool.last_updated + timedelta(hours=units / pool.regen_rate_per_hour)

    return regenerated.model_copy(update={"last_updated": stamp})


def apply_delta(pool: ResourcePool, delta: int, reason: str = "") -> Tuple[ResourcePool, ResourceChange]:
    """
    Apply a signed change and describe it

    Returns:
        (new pool, ResourceChange with before/after/requested)
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("Delta must be an integer", field="delta", value=delta)

    updated = gain(pool, delta) if delta >= 0 else spend(pool, -delta)
    change = ResourceChange(
        kind=pool.kind,
        before=pool.current,
        after=updated.current,
        requested=delta,
        reason=reason,
    )
    return updated, change


def starting_pools(
    character_class: CharacterClass,
    now: Optional[datetime] = None
) -> Dict[ResourceKind, ResourcePool]:
    """
    Build the four pools for a new character

    Class resource bonuses raise both the starting value and the cap.
    """
    bonuses = CLASS_RESOURCE_BONUSES.get(character_class, {})
    pools = {}
    for kind, (current, maximum, regen) in DEFAULT_RESOURCES.items():
        bonus = bonuses.get(kind, 0)
        pools[kind] = ResourcePool(
            kind=kind,
            current=current + bonus,
            max=maximum + bonus,
            regen_rate_per_hour=regen,
            last_updated=now,
        )
    return pools
