"""
XP and Leveling System

Owns total experience, the derived level, and the level curve.

Leveling Curve:
- Level 1: 0 XP
- Level n (n >= 2): floor(1000 * 1.1^(n-1)) total XP

Thresholds are absolute totals, so 1000 XP is still level 1 and 1100 XP is
level 2. Each threshold is ~10% above the previous one, compounding.

The ledger never grants resources or buffs; it only returns the new
character and what changed.
"""

from dataclasses import dataclass
from typing import Dict
import logging

from lifequest.exceptions import ValidationError
from lifequest.models.character import Character

logger = logging.getLogger(__name__)

BASE_LEVEL_XP = 1000
LEVEL_GROWTH = 1.1


@dataclass
class LevelUpResult:
    """Outcome of one add_xp call"""
    character: Character
    xp_awarded: int
    old_level: int
    new_level: int
    leveled_up: bool
    levels_gained: int


def xp_required_for_level(level: int) -> int:
    """
    Total XP needed to reach a level

    Args:
        level: Target level (>= 1)

    Returns:
        Absolute XP threshold for that level
    """
    if level < 1:
        raise ValidationError("Level must be at least 1", field="level", value=level)
    if level == 1:
        return 0
    return int(BASE_LEVEL_XP * LEVEL_GROWTH ** (level - 1))


def level_for_xp(total_xp: int) -> int:
    """
    Largest level whose threshold total_xp meets

    Monotonic non-decreasing in total_xp.
    """
    if total_xp < 0:
        raise ValidationError("Total XP cannot be negative", field="total_xp", value=total_xp)

    level = 1
    while total_xp >= xp_required_for_level(level + 1):
        level += 1
    return level


def level_progress(total_xp: int) -> Dict[str, float]:
    """
    Progress inside the current level

    Returns:
        {
            'current_level': int,
            'current_level_xp': int,
            'next_level_xp': int,
            'xp_in_current_level': int,
            'xp_to_next_level': int,
            'progress_percent': float
        }
    """
    level = level_for_xp(total_xp)
    current_threshold = xp_required_for_level(level)
    next_threshold = xp_required_for_level(level + 1)
    span = next_threshold - current_threshold

    xp_in_level = total_xp - current_threshold
    percent = min(100.0, max(0.0, xp_in_level * 100 / span))

    return {
        "current_level": level,
        "current_level_xp": current_threshold,
        "next_level_xp": next_threshold,
        "xp_in_current_level": xp_in_level,
        "xp_to_next_level": next_threshold - total_xp,
        "progress_percent": round(percent, 2),
    }


def add_xp(character: Character, amount: int) -> LevelUpResult:
    """
    Award XP and recompute level

    Args:
        character: Character before the award
        amount: Positive integer XP amount

    Returns:
        LevelUpResult with the updated character; may skip several levels

    Raises:
        ValidationError: amount is zero, negative or not an integer
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("XP amount must be a positive integer", field="amount", value=amount)

    old_level = level_for_xp(character.total_xp)
    new_total = character.total_xp + amount

    new_level = old_level
    while new_total >= xp_required_for_level(new_level + 1):
        new_level += 1

    levels_gained = new_level - old_level
    updated = character.model_copy(update={"total_xp": new_total, "level": new_level})

    logger.info(
        f"Awarded {amount} XP to character {character.id}. "
        f"Total: {new_total} XP, Level: {new_level}"
    )
    if levels_gained:
        logger.info(f"Character {character.id} leveled up from {old_level} to {new_level}!")

    return LevelUpResult(
        character=updated,
        xp_awarded=amount,
        old_level=old_level,
        new_level=new_level,
        leveled_up=levels_gained > 0,
        levels_gained=levels_gained,
    )


def reconcile_level(character: Character) -> Character:
    """Return the character with level recomputed from total_xp"""
    derived = level_for_xp(character.total_xp)
    if derived == character.level:
        return character

    logger.warning(
        f"Character {character.id} stored level {character.level} "
        f"disagrees with {character.total_xp} XP; using {derived}"
    )
    return character.model_copy(update={"level": derived})
