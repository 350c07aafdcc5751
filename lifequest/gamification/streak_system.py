"""
Streak Tracking System

Tracks streaks for every recurring item (basic needs, daily quests,
reflections) from elapsed time since the last completion:

- First completion: streak starts at 1
- Less than one cadence since last completion: already satisfied, rejected
- One cadence (plus the configured grace) since last: streak continues
- Longer gap: streak broken, restarts at 1
- best_streak is a high-water mark and never decreases

Overdue status and the effective streak are derived on read from the
timestamp; nothing stored can go stale.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import logging

from lifequest import config
from lifequest.exceptions import AlreadySatisfiedError
from lifequest.models.recurring import RecurringItem
from lifequest.utils.datetime_helpers import hours_between

logger = logging.getLogger(__name__)

STARTED = "started"
CONTINUED = "continued"
RESET = "reset"

# Streak milestones for basic needs: streak length -> bonus XP
STREAK_MILESTONES = {7: 50, 14: 100, 30: 200, 100: 500}


@dataclass
class StreakUpdate:
    """Outcome of recording one completion"""
    item: RecurringItem
    outcome: str
    old_streak: int
    gap_hours: Optional[float]
    message: str


def hours_since_completion(item: RecurringItem, now: datetime) -> Optional[float]:
    """Hours since last completion, or None if never completed"""
    if item.last_completed_at is None:
        return None
    return hours_between(item.last_completed_at, now)


def record_completion(
    item: RecurringItem,
    now: datetime,
    grace_hours: Optional[float] = None
) -> StreakUpdate:
    """
    Record a completion at now and update the streak

    Args:
        item: Recurring item before completion
        now: Event instant
        grace_hours: Extra hours past one cadence that still continue the
            streak (defaults to config.STREAK_GRACE_HOURS)

    Returns:
        StreakUpdate with the new item

    Raises:
        AlreadySatisfiedError: completed again inside the same cadence window
    """
    if grace_hours is None:
        grace_hours = config.STREAK_GRACE_HOURS

    cadence = item.ideal_cadence_hours
    gap = hours_since_completion(item, now)
    old_streak = item.streak_count

    if gap is None:
        new_streak = 1
        outcome = STARTED
        message = "Streak started! Day 1 🎉"

    elif gap < cadence:
        raise AlreadySatisfiedError(item.id, hours_since_last=gap, cadence_hours=cadence)

    elif gap <= cadence + grace_hours:
        new_streak = item.streak_count + 1
        outcome = CONTINUED
        message = f"Streak continues! {new_streak} in a row 🔥"

    else:
        new_streak = 1
        outcome = RESET
        message = f"Streak reset. Previous: {old_streak}. Starting fresh! 💪"
        logger.info(
            f"Streak broken for {item.kind.value} '{item.name}' ({item.id}). "
            f"Was {old_streak}, gap was {gap:.1f}h (cadence {cadence}h)"
        )

    updated = item.model_copy(update={
        "last_completed_at": now,
        "streak_count": new_streak,
        "best_streak": max(item.best_streak, new_streak),
        "completion_count": item.completion_count + 1,
    })

    logger.info(
        f"Updated streak for {item.kind.value} '{item.name}': "
        f"{old_streak} → {new_streak} ({outcome})"
    )

    return StreakUpdate(
        item=updated,
        outcome=outcome,
        old_streak=old_streak,
        gap_hours=gap,
        message=message,
    )


def is_overdue(item: RecurringItem, now: datetime) -> bool:
    """Derived: never completed, or more than one cadence since last completion"""
    gap = hours_since_completion(item, now)
    return gap is None or gap > item.ideal_cadence_hours


def is_broken(item: RecurringItem, now: datetime, grace_hours: Optional[float] = None) -> bool:
    """True when the next completion would reset the streak"""
    if grace_hours is None:
        grace_hours = config.STREAK_GRACE_HOURS
    gap = hours_since_completion(item, now)
    return gap is not None and gap > item.ideal_cadence_hours + grace_hours


def effective_streak(item: RecurringItem, now: datetime, grace_hours: Optional[float] = None) -> int:
    """Streak as it stands at now: 0 once the window to continue it has passed"""
    if is_broken(item, now, grace_hours):
        return 0
    return item.streak_count


def hours_until_due(item: RecurringItem, now: datetime) -> float:
    """Hours until the item becomes overdue (0 if already overdue)"""
    gap = hours_since_completion(item, now)
    if gap is None:
        return 0.0
    return max(0.0, item.ideal_cadence_hours - gap)


def can_complete(item: RecurringItem, now: datetime) -> bool:
    gap = hours_since_completion(item, now)
    return gap is None or gap >= item.ideal_cadence_hours


def daily_quest_streak_bonus(streak: int, cap: Optional[int] = None) -> int:
    """Bonus XP for a daily quest: one per consecutive completion after the first"""
    if cap is None:
        cap = config.DAILY_QUEST_MAX_STREAK_BONUS
    return max(0, min(streak - 1, cap))


def milestone_bonus(streak: int) -> int:
    """Bonus XP when a streak lands exactly on a milestone"""
    return STREAK_MILESTONES.get(streak, 0)
