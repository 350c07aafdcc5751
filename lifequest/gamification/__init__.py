"""
Gamification engine for LifeQuest

Pure ledgers over explicit state, sequenced by the Orchestrator:
- XP and leveling
- Resource pools (energy, focus, motivation, spoons)
- Streaks for basic needs, daily quests and reflections
- Timed buffs and buff combos
- Quests with objectives
- Achievements
"""

from lifequest.gamification.xp_system import add_xp, level_for_xp, xp_required_for_level
from lifequest.gamification.streak_system import record_completion, is_overdue
from lifequest.gamification.achievement_system import evaluate, build_progress_snapshot
from lifequest.gamification.catalog import Catalog, default_catalog, load_catalog
from lifequest.gamification.clock import Clock, FixedClock, SystemClock
from lifequest.gamification.orchestrator import Orchestrator

__all__ = [
    "add_xp",
    "level_for_xp",
    "xp_required_for_level",
    "record_completion",
    "is_overdue",
    "evaluate",
    "build_progress_snapshot",
    "Catalog",
    "default_catalog",
    "load_catalog",
    "Clock",
    "FixedClock",
    "SystemClock",
    "Orchestrator",
]
