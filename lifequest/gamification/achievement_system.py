"""
Achievement System

Evaluates achievements against a progress snapshot. The snapshot is built
from the character state by build_progress_snapshot(); achievements never
look at the state directly.

Rules:
- progress_current is always recomputed from the snapshot, never incremented
- progress_current >= progress_required unlocks the achievement once
- An unlocked achievement is never re-evaluated and never locks again
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List
import logging

from lifequest.gamification import streak_system, xp_system
from lifequest.models.achievement import Achievement, ProgressCounter
from lifequest.models.quest import QuestStatus
from lifequest.models.recurring import RecurringKind
from lifequest.models.state import CharacterState

logger = logging.getLogger(__name__)


@dataclass
class AchievementEvaluation:
    achievement: Achievement
    newly_unlocked: bool
    xp_reward: int


def evaluate(
    achievement: Achievement,
    snapshot: Dict[ProgressCounter, int],
    now: datetime
) -> AchievementEvaluation:
    """
    Recompute one achievement's progress

    Args:
        achievement: Achievement before evaluation
        snapshot: Counter values computed from the current state
        now: Event instant, used as unlocked_at

    Returns:
        AchievementEvaluation; xp_reward is non-zero only on the unlock
    """
    if achievement.unlocked:
        return AchievementEvaluation(achievement=achievement, newly_unlocked=False, xp_reward=0)

    current = max(0, snapshot.get(achievement.counter, 0))
    update = {"progress_current": current}

    newly_unlocked = current >= achievement.progress_required
    if newly_unlocked:
        update["unlocked"] = True
        update["unlocked_at"] = now
        logger.info(
            f"Achievement unlocked: {achievement.id} ({achievement.name}) "
            f"+{achievement.xp_reward} XP"
        )

    return AchievementEvaluation(
        achievement=achievement.model_copy(update=update),
        newly_unlocked=newly_unlocked,
        xp_reward=achievement.xp_reward if newly_unlocked else 0,
    )


def evaluate_all(
    achievements: Dict[str, Achievement],
    snapshot: Dict[ProgressCounter, int],
    now: datetime
) -> tuple:
    """
    Evaluate every achievement

    Returns:
        (updated achievements, list of newly unlocked AchievementEvaluation)
    """
    updated = {}
    unlocked: List[AchievementEvaluation] = []
    for achievement_id, achievement in achievements.items():
        evaluation = evaluate(achievement, snapshot, now)
        updated[achievement_id] = evaluation.achievement
        if evaluation.newly_unlocked:
            unlocked.append(evaluation)
    return updated, unlocked


def _completions(state: CharacterState, kind: RecurringKind) -> int:
    return sum(item.completion_count for item in state.recurring.values() if item.kind == kind)


def build_progress_snapshot(state: CharacterState, now: datetime) -> Dict[ProgressCounter, int]:
    """Compute every named counter from the character state at now"""
    quests = list(state.quests.values())
    recurring = list(state.recurring.values())
    reflections = [item for item in recurring if item.kind == RecurringKind.REFLECTION]

    return {
        ProgressCounter.QUESTS_COMPLETED: sum(
            1 for quest in quests if quest.status == QuestStatus.COMPLETED
        ),
        ProgressCounter.OBJECTIVES_COMPLETED: sum(
            1 for quest in quests for obj in quest.objectives if obj.is_completed
        ),
        ProgressCounter.NEEDS_COMPLETED: _completions(state, RecurringKind.BASIC_NEED),
        ProgressCounter.DAILY_QUESTS_COMPLETED: _completions(state, RecurringKind.DAILY_QUEST),
        ProgressCounter.REFLECTIONS_COMPLETED: _completions(state, RecurringKind.REFLECTION),
        ProgressCounter.BUFFS_ACTIVATED: state.totals.buffs_activated,
        ProgressCounter.COMBOS_ACHIEVED: state.totals.combos_achieved,
        ProgressCounter.CHARACTER_LEVEL: xp_system.level_for_xp(state.character.total_xp),
        ProgressCounter.TOTAL_XP: state.character.total_xp,
        ProgressCounter.BEST_STREAK: max((item.best_streak for item in recurring), default=0),
        ProgressCounter.CURRENT_STREAK: max(
            (streak_system.effective_streak(item, now) for item in recurring), default=0
        ),
        ProgressCounter.REFLECTION_STREAK: max(
            (streak_system.effective_streak(item, now) for item in reflections), default=0
        ),
    }


def achievement_summary(achievements: Dict[str, Achievement]) -> Dict[str, object]:
    """
    Totals for an achievements overview

    Returns:
        {
            'total': int,
            'unlocked': int,
            'xp_earned': int,
            'completion_percentage': int,
            'in_progress': [achievements sorted closest-to-unlock first]
        }
    """
    total = len(achievements)
    unlocked = [a for a in achievements.values() if a.unlocked]
    locked = [a for a in achievements.values() if not a.unlocked]
    locked.sort(key=lambda a: a.percentage, reverse=True)

    return {
        "total": total,
        "unlocked": len(unlocked),
        "xp_earned": sum(a.xp_reward for a in unlocked),
        "completion_percentage": round(len(unlocked) * 100 / total) if total else 0,
        "in_progress": locked,
    }
