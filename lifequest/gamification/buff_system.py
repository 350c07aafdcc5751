"""
Buff Registry

Timed self-care effects. Activating a buff that is already active stacks it
and refreshes its expiry to now + duration; durations never add up. Expiry is
lazy: anything with expires_at <= now is treated as gone, and purge_expired()
is only housekeeping.
"""

from dataclasses import dataclass, field
from datetime import datetime
from math import floor
from typing import Dict, List, Optional, Tuple
from uuid import uuid4
import logging

from lifequest.exceptions import NotFoundError, ValidationError
from lifequest.models.buff import Buff, BuffCombo, BuffKind
from lifequest.models.character import StatName
from lifequest.utils.datetime_helpers import add_minutes

logger = logging.getLogger(__name__)

ACTIVATED = "activated"
STACKED = "stacked"

# Base XP per buff kind for a one-hour activation
BASE_BUFF_XP = {
    BuffKind.HYGIENE: 15,
    BuffKind.NUTRITION: 20,
    BuffKind.HYDRATION: 10,
    BuffKind.MOVEMENT: 25,
    BuffKind.MEDICATION: 30,
}
DEFAULT_BASE_BUFF_XP = 15


@dataclass
class BuffActivation:
    """Outcome of one activation"""
    buffs: Dict[str, Buff]
    buff: Buff
    event: str
    xp: int


@dataclass
class ComboCheck:
    """Combos completed by an activation"""
    combos: Dict[str, BuffCombo]
    achieved: List[BuffCombo] = field(default_factory=list)

    @property
    def bonus_xp(self) -> int:
        return sum(combo.bonus_xp for combo in self.achieved)


def calculate_buff_xp(kind: BuffKind, duration_minutes: int) -> int:
    """Longer activations earn more: base * max(1, duration / 60), floored"""
    base = BASE_BUFF_XP.get(kind, DEFAULT_BASE_BUFF_XP)
    return floor(base * max(1, duration_minutes / 60))


def active_buffs(buffs: Dict[str, Buff], now: datetime) -> List[Buff]:
    """Buffs still in effect at now, most recently activated first"""
    live = [buff for buff in buffs.values() if buff.is_active_at(now)]
    return sorted(live, key=lambda buff: buff.activated_at, reverse=True)


def find_active_by_name(buffs: Dict[str, Buff], name: str, now: datetime) -> Optional[Buff]:
    for buff in active_buffs(buffs, now):
        if buff.name == name:
            return buff
    return None


def activate(
    buffs: Dict[str, Buff],
    name: str,
    kind: BuffKind,
    stat_boost: Dict[StatName, int],
    duration_minutes: int,
    now: datetime,
    buff_id: Optional[str] = None
) -> BuffActivation:
    """
    Activate or stack a buff

    Args:
        buffs: Current registry (not mutated)
        name: Buff name; stacking is keyed on it
        kind: Buff kind, drives the XP reward
        stat_boost: Stat -> magnitude per stack
        duration_minutes: Positive duration
        now: Event instant
        buff_id: Id for a newly created buff (generated if omitted)

    Returns:
        BuffActivation with the new registry

    Raises:
        ValidationError: empty name or non-positive duration
    """
    if not name or not name.strip():
        raise ValidationError("Buff name is required", field="name", value=name)
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise ValidationError(
            "Duration must be a positive number of minutes",
            field="duration_minutes",
            value=duration_minutes,
        )

    xp = calculate_buff_xp(kind, duration_minutes)
    expires_at = add_minutes(now, duration_minutes)
    existing = find_active_by_name(buffs, name, now)

    updated_buffs = dict(buffs)
    if existing is not None:
        buff = existing.model_copy(update={
            "stack_count": existing.stack_count + 1,
            "expires_at": expires_at,
            "activated_at": now,
            "duration_minutes": duration_minutes,
        })
        event = STACKED
        logger.info(f"Buff '{name}' stacked to x{buff.stack_count}, expires {expires_at.isoformat()}")
    else:
        buff = Buff(
            id=buff_id or str(uuid4()),
            name=name,
            kind=kind,
            stat_boost=dict(stat_boost),
            stack_count=1,
            duration_minutes=duration_minutes,
            xp_reward=xp,
            activated_at=now,
            expires_at=expires_at,
            is_active=True,
        )
        event = ACTIVATED
        logger.info(f"Buff '{name}' ({kind.value}) activated for {duration_minutes} min")

    updated_buffs[buff.id] = buff
    return BuffActivation(buffs=updated_buffs, buff=buff, event=event, xp=xp)


def deactivate(buffs: Dict[str, Buff], buff_id: str, now: datetime) -> Dict[str, Buff]:
    """Force-expire a buff at now"""
    buff = buffs.get(buff_id)
    if buff is None:
        raise NotFoundError(f"Buff {buff_id} not found", record_type="Buff", record_id=buff_id)

    updated = dict(buffs)
    updated[buff_id] = buff.model_copy(update={"expires_at": now, "is_active": False})
    logger.info(f"Buff '{buff.name}' deactivated")
    return updated


def purge_expired(buffs: Dict[str, Buff], now: datetime) -> Tuple[Dict[str, Buff], int]:
    """Drop buffs that are no longer in effect. Returns (registry, removed count)."""
    kept = {buff_id: buff for buff_id, buff in buffs.items() if buff.is_active_at(now)}
    removed = len(buffs) - len(kept)
    if removed:
        logger.debug(f"Purged {removed} expired buff(s)")
    return kept, removed


def total_stat_boost(buffs: Dict[str, Buff], now: datetime) -> Dict[StatName, int]:
    """Sum of stat boosts from active buffs, each weighted by its stack count"""
    totals: Dict[StatName, int] = {}
    for buff in active_buffs(buffs, now):
        for stat, magnitude in buff.stat_boost.items():
            totals[stat] = totals.get(stat, 0) + magnitude * buff.stack_count
    return totals


def active_kinds(buffs: Dict[str, Buff], now: datetime) -> set:
    return {buff.kind for buff in active_buffs(buffs, now)}


def check_combos(
    combos: Dict[str, BuffCombo],
    kinds_before: set,
    kinds_after: set,
    now: datetime
) -> ComboCheck:
    """
    Award combos whose required kinds became fully active with this activation

    A combo that was already complete before the activation is not awarded
    again; it has to lapse and be rebuilt.
    """
    updated = dict(combos)
    achieved = []
    for combo_id, combo in combos.items():
        required = set(combo.required_kinds)
        if required <= kinds_after and not required <= kinds_before:
            combo = combo.model_copy(update={
                "times_achieved": combo.times_achieved + 1,
                "last_achieved_at": now,
            })
            updated[combo_id] = combo
            achieved.append(combo)
            logger.info(f"Buff combo '{combo.name}' achieved (+{combo.bonus_xp} XP)")
    return ComboCheck(combos=updated, achieved=achieved)
