"""
Quest Engine

Quest lifecycle and the objective -> quest completion cascade.

State machine:
    available -> active -> completed
    available | active -> abandoned
    active -> failed (e.g. time limit exceeded)

completed, failed and abandoned are terminal. Completing the last required
objective completes the quest automatically; optional objectives never block
or trigger that. A quest with no required objectives can only be completed
manually through complete_quest().
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import uuid4
import logging

from lifequest.exceptions import (
    AlreadyCompletedError,
    IncompleteRequiredObjectivesError,
    InvalidTransitionError,
    NotFoundError,
    QuestExpiredError,
)
from lifequest.models.quest import Difficulty, Objective, Quest, QuestStatus, QuestType
from lifequest.models.reward import Reward

logger = logging.getLogger(__name__)


@dataclass
class QuestCompleted:
    """Cascade event carrying the quest's own rewards"""
    quest_id: str
    xp_reward: int
    gold_reward: int
    energy_cost: int
    rewards: List[Reward]


@dataclass
class ObjectiveCompletion:
    """Outcome of completing one objective"""
    quest: Quest
    objective: Objective
    objective_xp: int
    cascaded: Optional[QuestCompleted] = None


def _completion_event(quest: Quest) -> QuestCompleted:
    return QuestCompleted(
        quest_id=quest.id,
        xp_reward=quest.xp_reward,
        gold_reward=quest.gold_reward or 0,
        energy_cost=quest.energy_cost,
        rewards=list(quest.rewards),
    )


def _illegal(quest: Quest, action: str) -> InvalidTransitionError:
    return InvalidTransitionError(
        f"Cannot {action} quest {quest.id} from status '{quest.status.value}'",
        rule=f"{action}_from_{quest.status.value}",
        entity_type="quest",
        entity_id=quest.id,
    )


def create_quest(
    name: str,
    quest_type: QuestType = QuestType.SIDE,
    difficulty: Difficulty = Difficulty.NORMAL,
    xp_reward: int = 50,
    gold_reward: Optional[int] = None,
    time_limit_minutes: Optional[int] = None,
    energy_cost: int = 0,
    rewards: Optional[List[Reward]] = None,
    description: Optional[str] = None,
    objectives: Optional[List[Tuple[str, bool, int]]] = None,
    quest_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> Quest:
    """
    Build a new available quest

    Args:
        objectives: Optional (text, is_required, xp_reward) tuples, in order

    Returns:
        Quest in status available
    """
    quest = Quest(
        id=quest_id or str(uuid4()),
        name=name,
        description=description,
        quest_type=quest_type,
        difficulty=difficulty,
        xp_reward=xp_reward,
        gold_reward=gold_reward,
        time_limit_minutes=time_limit_minutes,
        energy_cost=energy_cost,
        rewards=rewards or [],
        created_at=now,
    )
    for text, is_required, objective_xp in objectives or []:
        quest = add_objective(quest, text, is_required=is_required, xp_reward=objective_xp)
    return quest


def add_objective(
    quest: Quest,
    text: str,
    is_required: bool = True,
    xp_reward: int = 10,
    order: Optional[int] = None,
    objective_id: Optional[str] = None
) -> Quest:
    """Append an objective; order defaults to the next position"""
    if quest.is_terminal:
        raise _illegal(quest, "add objective to")

    if order is None:
        order = max((obj.order for obj in quest.objectives), default=0) + 1

    objective = Objective(
        id=objective_id or str(uuid4()),
        quest_id=quest.id,
        text=text,
        order=order,
        is_required=is_required,
        xp_reward=xp_reward,
    )
    objectives = sorted(quest.objectives + [objective], key=lambda obj: obj.order)
    return quest.model_copy(update={"objectives": objectives})


def is_expired(quest: Quest, now: datetime) -> bool:
    """Active quest whose time limit has run out"""
    if quest.status != QuestStatus.ACTIVE or quest.time_limit_minutes is None or quest.started_at is None:
        return False
    return now > quest.started_at + timedelta(minutes=quest.time_limit_minutes)


def start(quest: Quest, now: datetime) -> Quest:
    """available -> active. Anything else is a logic error."""
    if quest.status != QuestStatus.AVAILABLE:
        raise _illegal(quest, "start")

    logger.info(f"Quest '{quest.name}' ({quest.id}) started")
    return quest.model_copy(update={"status": QuestStatus.ACTIVE, "started_at": now})


def abandon(quest: Quest, now: datetime) -> Quest:
    """available | active -> abandoned"""
    if quest.status not in (QuestStatus.AVAILABLE, QuestStatus.ACTIVE):
        raise _illegal(quest, "abandon")

    logger.info(f"Quest '{quest.name}' ({quest.id}) abandoned")
    return quest.model_copy(update={"status": QuestStatus.ABANDONED})


def fail(quest: Quest, now: datetime) -> Quest:
    """active -> failed"""
    if quest.status != QuestStatus.ACTIVE:
        raise _illegal(quest, "fail")

    logger.info(f"Quest '{quest.name}' ({quest.id}) failed")
    return quest.model_copy(update={"status": QuestStatus.FAILED})


def expire_overdue(quests: Dict[str, Quest], now: datetime) -> Tuple[Dict[str, Quest], List[str]]:
    """Fail every active quest whose time limit has passed"""
    updated = dict(quests)
    failed = []
    for quest_id, quest in quests.items():
        if is_expired(quest, now):
            updated[quest_id] = fail(quest, now)
            failed.append(quest_id)
    return updated, failed


def _mark_completed(quest: Quest, now: datetime) -> Quest:
    return quest.model_copy(update={
        "status": QuestStatus.COMPLETED,
        "completed_at": now,
        "started_at": quest.started_at or now,
    })


def _ensure_workable(quest: Quest, now: datetime) -> Quest:
    """Reject terminal/expired quests; implicitly start available ones"""
    if quest.status in (QuestStatus.FAILED, QuestStatus.ABANDONED):
        raise _illegal(quest, "progress")
    if is_expired(quest, now):
        raise QuestExpiredError(quest.id)
    if quest.status == QuestStatus.AVAILABLE:
        return start(quest, now)
    return quest


def complete_objective(quest: Quest, objective_id: str, now: datetime) -> ObjectiveCompletion:
    """
    Complete one objective and resolve the quest cascade

    The objective's own XP is always awarded. The quest completes when the
    objective just completed is required, every required objective is now
    done and the quest is not already completed.

    Raises:
        NotFoundError: objective is not on this quest
        AlreadyCompletedError: objective was already completed
        InvalidTransitionError: quest failed or abandoned
        QuestExpiredError: quest time limit has elapsed
    """
    objective = quest.get_objective(objective_id)
    if objective is None:
        raise NotFoundError(
            f"Objective {objective_id} not found on quest {quest.id}",
            record_type="Objective",
            record_id=objective_id,
        )
    if objective.is_completed:
        raise AlreadyCompletedError("objective", objective_id)

    if quest.status != QuestStatus.COMPLETED:
        quest = _ensure_workable(quest, now)

    completed_objective = objective.model_copy(update={"is_completed": True, "completed_at": now})
    objectives = [
        completed_objective if obj.id == objective_id else obj
        for obj in quest.objectives
    ]
    quest = quest.model_copy(update={"objectives": objectives})

    cascaded = None
    if (
        completed_objective.is_required
        and quest.status != QuestStatus.COMPLETED
        and not quest.remaining_required()
    ):
        quest = _mark_completed(quest, now)
        cascaded = _completion_event(quest)
        logger.info(f"Quest '{quest.name}' ({quest.id}) auto-completed: all required objectives done")

    logger.info(
        f"Objective '{completed_objective.text}' completed on quest {quest.id} "
        f"(+{completed_objective.xp_reward} XP)"
    )

    return ObjectiveCompletion(
        quest=quest,
        objective=completed_objective,
        objective_xp=completed_objective.xp_reward,
        cascaded=cascaded,
    )


def complete_quest(quest: Quest, now: datetime) -> Tuple[Quest, QuestCompleted]:
    """
    Manually complete a quest

    Vacuously allowed for quests without required objectives.

    Raises:
        AlreadyCompletedError: quest already completed
        InvalidTransitionError: quest failed or abandoned
        QuestExpiredError: quest time limit has elapsed
        IncompleteRequiredObjectivesError: lists the unfinished objective texts
    """
    if quest.status == QuestStatus.COMPLETED:
        raise AlreadyCompletedError("quest", quest.id)

    quest = _ensure_workable(quest, now)

    remaining = quest.remaining_required()
    if remaining:
        raise IncompleteRequiredObjectivesError(
            quest.id, remaining_objectives=[obj.text for obj in remaining]
        )

    quest = _mark_completed(quest, now)
    logger.info(f"Quest '{quest.name}' ({quest.id}) completed")
    return quest, _completion_event(quest)


def quest_progress(quest: Quest) -> int:
    """Percent of objectives completed (100 for a quest with none)"""
    total = len(quest.objectives)
    if total == 0:
        return 100
    done = sum(1 for obj in quest.objectives if obj.is_completed)
    return round(done * 100 / total)
