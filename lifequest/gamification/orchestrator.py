"""
Orchestrator

Turns one triggering event into one consolidated result. Every event runs
the same fixed sequence against a private deep copy of the state:

1. Direct effect (objective, need, buff, daily quest, ...)
2. Cascade rewards (quest auto-completed -> quest XP, gold, rewards)
3. All XP from 1-2 applied in one Progression Ledger call
4. Resource deltas
5. Achievement snapshot + evaluation; achievement XP is a second,
   independent Progression Ledger call
6. (new_state, result) returned

The clock is read once per event. If any step raises, the caller's state is
untouched and nothing is returned.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging

import pydantic

from lifequest import config
from lifequest.exceptions import NotFoundError, ValidationError
from lifequest.gamification import (
    achievement_system,
    buff_system,
    quest_system,
    resource_system,
    streak_system,
    xp_system,
)
from lifequest.gamification.catalog import Catalog, default_catalog, instantiate_quest, new_character_state
from lifequest.gamification.clock import Clock, SystemClock
from lifequest.models.buff import BuffKind
from lifequest.models.character import CharacterClass, STAT_MAX_VALUE, StatName
from lifequest.models.quest import Quest
from lifequest.models.recurring import RecurringItem, RecurringKind
from lifequest.models.resource import ResourceChange, ResourceKind
from lifequest.models.results import (
    BuffActivationResult,
    CharacterSheet,
    DailyQuestCompletionResult,
    NeedCompletionResult,
    ObjectiveCompletionResult,
    QuestCompletionResult,
    QuestExpiryResult,
    UnlockedAchievement,
)
from lifequest.models.reward import ResourceReward, Reward, SkillTreeCredit, StatBoostReward, XpReward
from lifequest.models.state import CharacterState
from lifequest.utils.datetime_helpers import format_relative_time

logger = logging.getLogger(__name__)


@dataclass
class _Pending:
    """XP and resource deltas collected in steps 1-2, applied in 3-4"""
    xp: int = 0
    resources: List[Tuple[ResourceKind, int, str]] = field(default_factory=list)


class Orchestrator:
    """
    Sequences events across the ledgers for one character state

    All methods take the current CharacterState and return a new one; the
    argument is never mutated.
    """

    def __init__(self, clock: Optional[Clock] = None, catalog: Optional[Catalog] = None):
        self.clock = clock or SystemClock()
        self.catalog = catalog or default_catalog()

    # ==========================================
    # Helpers
    # ==========================================

    @staticmethod
    def _working_copy(state: CharacterState) -> CharacterState:
        """Private deep copy an event runs against; a drifted stored level is corrected here"""
        work = state.model_copy(deep=True)
        work.character = xp_system.reconcile_level(work.character)
        return work

    @staticmethod
    def _get_quest(state: CharacterState, quest_id: str) -> Quest:
        quest = state.quests.get(quest_id)
        if quest is None:
            raise NotFoundError(
                f"Quest {quest_id} not found",
                record_type="Quest",
                record_id=quest_id,
                character_id=state.character_id,
            )
        return quest

    @staticmethod
    def _get_recurring(state: CharacterState, item_id: str, kinds: Tuple[RecurringKind, ...]) -> RecurringItem:
        item = state.recurring.get(item_id)
        if item is None:
            raise NotFoundError(
                f"Recurring item {item_id} not found",
                record_type="RecurringItem",
                record_id=item_id,
                character_id=state.character_id,
            )
        if item.kind not in kinds:
            raise ValidationError(
                f"Item {item_id} is a {item.kind.value}, expected {' or '.join(k.value for k in kinds)}",
                field="item_id",
                value=item_id,
            )
        return item

    @staticmethod
    def _get_pool(state: CharacterState, kind: ResourceKind):
        pool = state.resources.get(kind)
        if pool is None:
            raise NotFoundError(
                f"Resource pool {kind.value} not found",
                record_type="ResourcePool",
                record_id=kind.value,
                character_id=state.character_id,
            )
        return pool

    def _caught_up_pool(self, state: CharacterState, kind: ResourceKind, now: datetime):
        """
        Pool with regeneration credited up to now

        Every spend or gain starts from here, so time before the mutation is
        credited at most once. A full pool accrues nothing, so its clock moves
        to now.
        """
        pool = resource_system.regenerate_since(self._get_pool(state, kind), now)
        if pool.current >= pool.max:
            pool = pool.model_copy(update={"last_updated": now})
        return pool

    @staticmethod
    def _apply_rewards(work: CharacterState, rewards: List[Reward], pending: _Pending, source: str) -> None:
        """Route each reward to where it lands; XP and resources wait for steps 3-4"""
        character = work.character
        for reward in rewards:
            if isinstance(reward, XpReward):
                pending.xp += reward.amount
            elif isinstance(reward, ResourceReward):
                pending.resources.append((reward.resource, reward.amount, source))
            elif isinstance(reward, StatBoostReward):
                bonuses = dict(character.stat_bonuses)
                bonuses[reward.stat] = bonuses.get(reward.stat, 0) + reward.amount
                character = character.model_copy(update={"stat_bonuses": bonuses})
            elif isinstance(reward, SkillTreeCredit):
                trees = dict(character.skill_tree_xp)
                trees[reward.tree] = trees.get(reward.tree, 0) + reward.xp
                character = character.model_copy(update={"skill_tree_xp": trees})
        work.character = character

    def _settle(self, work: CharacterState, pending: _Pending, now: datetime) -> Dict[str, Any]:
        """Steps 3-5. Returns the fields every EventResult carries."""
        leveled_up = False
        levels_gained = 0

        # 3. One Progression Ledger call for the event's XP
        direct_xp = pending.xp
        if direct_xp > 0:
            level_up = xp_system.add_xp(work.character, direct_xp)
            work.character = level_up.character
            leveled_up = level_up.leveled_up
            levels_gained += level_up.levels_gained

        # 4. Resource deltas
        deltas: List[ResourceChange] = []
        for kind, amount, reason in pending.resources:
            pool, change = resource_system.apply_delta(self._caught_up_pool(work, kind, now), amount, reason)
            work.resources[kind] = pool
            deltas.append(change)

        # 5. Achievements see the post-level-up, post-resource state
        snapshot = achievement_system.build_progress_snapshot(work, now)
        work.achievements, unlocked = achievement_system.evaluate_all(work.achievements, snapshot, now)

        achievement_xp = sum(evaluation.xp_reward for evaluation in unlocked)
        if achievement_xp > 0:
            level_up = xp_system.add_xp(work.character, achievement_xp)
            work.character = level_up.character
            leveled_up = leveled_up or level_up.leveled_up
            levels_gained += level_up.levels_gained

        work.updated_at = now

        return {
            "character_id": work.character_id,
            "xp_awarded": direct_xp + achievement_xp,
            "leveled_up": leveled_up,
            "levels_gained": levels_gained,
            "new_level": work.character.level if leveled_up else None,
            "level": work.character.level,
            "total_xp": work.character.total_xp,
            "resource_deltas": deltas,
            "achievements_unlocked": [
                UnlockedAchievement(
                    achievement_id=evaluation.achievement.id,
                    name=evaluation.achievement.name,
                    xp_reward=evaluation.xp_reward,
                    unlocked_at=now,
                )
                for evaluation in unlocked
            ],
            "achievement_xp": achievement_xp,
        }

    def _collect_quest_completion(
        self,
        work: CharacterState,
        completed: quest_system.QuestCompleted,
        pending: _Pending
    ) -> None:
        """Step 2 for a completed quest: XP, gold, rewards and energy cost"""
        pending.xp += completed.xp_reward
        if completed.gold_reward:
            work.character = work.character.model_copy(
                update={"gold": work.character.gold + completed.gold_reward}
            )
        self._apply_rewards(work, completed.rewards, pending, source=f"quest:{completed.quest_id}")
        if completed.energy_cost:
            pending.resources.append(
                (ResourceKind.ENERGY, -completed.energy_cost, f"quest:{completed.quest_id}")
            )

    # ==========================================
    # Character lifecycle
    # ==========================================

    def create_character(
        self,
        character_id: str,
        name: str,
        character_class: CharacterClass = CharacterClass.LIFE_EXPLORER
    ) -> CharacterState:
        """Fresh character seeded from the catalog"""
        if not character_id:
            raise ValidationError("Character id is required", field="character_id", value=character_id)
        if not name or not name.strip():
            raise ValidationError("Character name is required", field="name", value=name)

        now = self.clock.now()
        return new_character_state(character_id, name.strip(), character_class, self.catalog, now)

    # ==========================================
    # Quests
    # ==========================================

    def add_quest(self, state: CharacterState, quest: Quest) -> CharacterState:
        """Add a caller-built quest; it is re-validated since model_copy() skips validation"""
        try:
            quest = Quest.model_validate(quest.model_dump())
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Quest {quest.id} is inconsistent: {e.error_count()} error(s)",
                field="quest",
                value=quest.id,
            ) from e
        if quest.id in state.quests:
            raise ValidationError(f"Quest {quest.id} already exists", field="quest_id", value=quest.id)
        work = self._working_copy(state)
        work.quests[quest.id] = quest
        work.updated_at = self.clock.now()
        return work

    def add_quest_from_template(
        self,
        state: CharacterState,
        template_key: str,
        quest_id: Optional[str] = None
    ) -> Tuple[CharacterState, Quest]:
        """Instantiate a catalog quest template for this character"""
        now = self.clock.now()
        template = self.catalog.get_quest_template(template_key)
        quest = instantiate_quest(template, now, quest_id=quest_id)
        if quest.id in state.quests:
            raise ValidationError(f"Quest {quest.id} already exists", field="quest_id", value=quest.id)

        work = self._working_copy(state)
        work.quests[quest.id] = quest
        work.updated_at = now
        logger.info(f"Added quest '{quest.name}' from template '{template_key}' for {state.character_id}")
        return work, quest

    def start_quest(self, state: CharacterState, quest_id: str) -> Tuple[CharacterState, Quest]:
        now = self.clock.now()
        work = self._working_copy(state)
        quest = quest_system.start(self._get_quest(work, quest_id), now)
        work.quests[quest_id] = quest
        work.updated_at = now
        return work, quest

    def abandon_quest(self, state: CharacterState, quest_id: str) -> Tuple[CharacterState, Quest]:
        now = self.clock.now()
        work = self._working_copy(state)
        quest = quest_system.abandon(self._get_quest(work, quest_id), now)
        work.quests[quest_id] = quest
        work.updated_at = now
        return work, quest

    def complete_objective(
        self,
        state: CharacterState,
        quest_id: str,
        objective_id: str
    ) -> Tuple[CharacterState, ObjectiveCompletionResult]:
        """
        Complete an objective and resolve the quest cascade

        Returns:
            (new state, ObjectiveCompletionResult)

        Raises:
            NotFoundError, AlreadyCompletedError, InvalidTransitionError,
            QuestExpiredError
        """
        now = self.clock.now()
        work = self._working_copy(state)
        pending = _Pending()

        # 1. Direct effect
        completion = quest_system.complete_objective(self._get_quest(work, quest_id), objective_id, now)
        work.quests[quest_id] = completion.quest
        pending.xp += completion.objective_xp

        # 2. Cascade
        gold_before = work.character.gold
        if completion.cascaded is not None:
            self._collect_quest_completion(work, completion.cascaded, pending)

        common = self._settle(work, pending, now)

        quest_completed = completion.cascaded is not None
        message = f"Objective complete! +{completion.objective_xp} XP"
        if quest_completed:
            message += f". Quest '{completion.quest.name}' complete! +{completion.cascaded.xp_reward} XP"

        result = ObjectiveCompletionResult(
            quest_id=quest_id,
            objective_id=objective_id,
            objective_xp=completion.objective_xp,
            quest_completed=quest_completed,
            quest_xp=completion.cascaded.xp_reward if quest_completed else None,
            gold_awarded=work.character.gold - gold_before,
            message=message,
            **common,
        )
        logger.info(
            f"[{state.character_id}] objective {objective_id} on quest {quest_id}: "
            f"+{result.xp_awarded} XP, quest_completed={quest_completed}"
        )
        return work, result

    def complete_quest(self, state: CharacterState, quest_id: str) -> Tuple[CharacterState, QuestCompletionResult]:
        """
        Manually complete a quest

        Raises:
            IncompleteRequiredObjectivesError: required objectives still open
        """
        now = self.clock.now()
        work = self._working_copy(state)
        pending = _Pending()

        quest, completed = quest_system.complete_quest(self._get_quest(work, quest_id), now)
        work.quests[quest_id] = quest

        gold_before = work.character.gold
        self._collect_quest_completion(work, completed, pending)

        common = self._settle(work, pending, now)
        result = QuestCompletionResult(
            quest_id=quest_id,
            quest_xp=completed.xp_reward,
            gold_awarded=work.character.gold - gold_before,
            message=f"Quest '{quest.name}' complete! +{completed.xp_reward} XP",
            **common,
        )
        logger.info(f"[{state.character_id}] quest {quest_id} completed: +{result.xp_awarded} XP")
        return work, result

    def expire_quests(self, state: CharacterState) -> Tuple[CharacterState, QuestExpiryResult]:
        """Fail every active quest past its time limit"""
        now = self.clock.now()
        work = self._working_copy(state)

        work.quests, failed = quest_system.expire_overdue(work.quests, now)
        common = self._settle(work, _Pending(), now)

        return work, QuestExpiryResult(
            failed_quest_ids=failed,
            message=f"{len(failed)} quest(s) ran out of time" if failed else "No expired quests",
            **common,
        )

    # ==========================================
    # Recurring items
    # ==========================================

    def complete_need(self, state: CharacterState, need_id: str) -> Tuple[CharacterState, NeedCompletionResult]:
        """
        Complete a basic need

        XP is the need's xp_reward plus a milestone bonus when the streak
        lands on 7/14/30/100. is_overdue reports whether the need was overdue
        when it was completed.

        Raises:
            AlreadySatisfiedError: already completed this cadence window
        """
        now = self.clock.now()
        work = self._working_copy(state)
        pending = _Pending()

        item = self._get_recurring(work, need_id, (RecurringKind.BASIC_NEED,))
        was_overdue = streak_system.is_overdue(item, now)

        update = streak_system.record_completion(item, now)
        work.recurring[need_id] = update.item

        milestone = streak_system.milestone_bonus(update.item.streak_count)
        xp = item.xp_reward + milestone
        pending.xp += xp
        self._apply_rewards(work, list(item.resource_rewards), pending, source=f"need:{need_id}")

        common = self._settle(work, pending, now)
        message = update.message
        if milestone:
            message += f" Milestone bonus +{milestone} XP!"

        result = NeedCompletionResult(
            need_id=need_id,
            xp=xp,
            new_streak=update.item.streak_count,
            best_streak=update.item.best_streak,
            streak_outcome=update.outcome,
            milestone_bonus=milestone,
            is_overdue=was_overdue,
            message=message,
            **common,
        )
        return work, result

    def complete_daily_quest(
        self,
        state: CharacterState,
        item_id: str
    ) -> Tuple[CharacterState, DailyQuestCompletionResult]:
        """
        Complete a daily quest or reflection

        XP is the item's xp_reward plus min(streak - 1, cap). Reflections
        also grant their wisdom points.

        Raises:
            AlreadySatisfiedError: already completed today
        """
        now = self.clock.now()
        work = self._working_copy(state)
        pending = _Pending()

        item = self._get_recurring(work, item_id, (RecurringKind.DAILY_QUEST, RecurringKind.REFLECTION))
        update = streak_system.record_completion(item, now)
        work.recurring[item_id] = update.item

        streak_bonus = streak_system.daily_quest_streak_bonus(update.item.streak_count)
        xp = item.xp_reward + streak_bonus
        pending.xp += xp
        self._apply_rewards(work, list(item.resource_rewards), pending, source=f"daily:{item_id}")

        if item.wisdom_points:
            work.character = work.character.model_copy(
                update={"wisdom_points": work.character.wisdom_points + item.wisdom_points}
            )

        common = self._settle(work, pending, now)
        result = DailyQuestCompletionResult(
            item_id=item_id,
            xp=xp,
            base_xp=item.xp_reward,
            streak_bonus=streak_bonus,
            new_streak=update.item.streak_count,
            best_streak=update.item.best_streak,
            wisdom_points=item.wisdom_points,
            message=f"Daily quest completed! +{xp} XP" + (f" (streak bonus +{streak_bonus})" if streak_bonus else ""),
            **common,
        )
        return work, result

    # ==========================================
    # Buffs
    # ==========================================

    def activate_buff(
        self,
        state: CharacterState,
        name: str,
        kind: BuffKind,
        stat_boost: Optional[Dict[StatName, int]] = None,
        duration_minutes: Optional[int] = None
    ) -> Tuple[CharacterState, BuffActivationResult]:
        """
        Activate or stack a buff, then check buff combos

        XP is awarded for every activation, stacks included. A combo pays its
        bonus when this activation completes its required kinds.
        """
        if duration_minutes is None:
            duration_minutes = config.DEFAULT_BUFF_DURATION_MINUTES

        now = self.clock.now()
        work = self._working_copy(state)
        pending = _Pending()

        kinds_before = buff_system.active_kinds(work.buffs, now)
        activation = buff_system.activate(work.buffs, name, kind, stat_boost or {}, duration_minutes, now)
        work.buffs = activation.buffs
        pending.xp += activation.xp

        combo_check = buff_system.check_combos(
            work.combos, kinds_before, buff_system.active_kinds(work.buffs, now), now
        )
        work.combos = combo_check.combos
        pending.xp += combo_check.bonus_xp

        work.totals = work.totals.model_copy(update={
            "buffs_activated": work.totals.buffs_activated + 1,
            "combos_achieved": work.totals.combos_achieved + len(combo_check.achieved),
        })

        common = self._settle(work, pending, now)
        stacked = activation.event == buff_system.STACKED
        message = (
            f"{activation.buff.name} stacked x{activation.buff.stack_count}! +{activation.xp} XP"
            if stacked else f"{activation.buff.name} activated! +{activation.xp} XP"
        )
        for combo in combo_check.achieved:
            message += f" Combo '{combo.name}' +{combo.bonus_xp} XP!"

        result = BuffActivationResult(
            buff_id=activation.buff.id,
            xp=activation.xp,
            stacked=stacked,
            stack_count=activation.buff.stack_count,
            expires_at=activation.buff.expires_at,
            combos_achieved=[combo.id for combo in combo_check.achieved],
            combo_xp=combo_check.bonus_xp,
            message=message,
            **common,
        )
        return work, result

    def deactivate_buff(self, state: CharacterState, buff_id: str) -> CharacterState:
        now = self.clock.now()
        work = self._working_copy(state)
        work.buffs = buff_system.deactivate(work.buffs, buff_id, now)
        work.updated_at = now
        return work

    def housekeeping(self, state: CharacterState) -> Tuple[CharacterState, int]:
        """Drop expired buffs. Returns (new state, number purged)."""
        now = self.clock.now()
        work = self._working_copy(state)
        work.buffs, removed = buff_system.purge_expired(work.buffs, now)
        work.updated_at = now
        return work, removed

    # ==========================================
    # Resources
    # ==========================================

    def _change_resource(
        self,
        state: CharacterState,
        kind: ResourceKind,
        amount: int,
        spending: bool,
        reason: str
    ) -> Tuple[CharacterState, ResourceChange]:
        now = self.clock.now()
        work = self._working_copy(state)
        pool = self._caught_up_pool(work, kind, now)
        updated = resource_system.spend(pool, amount) if spending else resource_system.gain(pool, amount)
        work.resources[kind] = updated
        work.updated_at = now

        change = ResourceChange(
            kind=kind,
            before=pool.current,
            after=updated.current,
            requested=-amount if spending else amount,
            reason=reason,
        )
        if change.clamped:
            logger.warning(
                f"[{state.character_id}] {kind.value} change of {change.requested} clamped to {change.delta}"
            )
        return work, change

    def spend_resource(
        self,
        state: CharacterState,
        kind: ResourceKind,
        amount: int,
        reason: str = "spend"
    ) -> Tuple[CharacterState, ResourceChange]:
        """Spend from a pool; overdraft floors at zero"""
        return self._change_resource(state, kind, amount, spending=True, reason=reason)

    def gain_resource(
        self,
        state: CharacterState,
        kind: ResourceKind,
        amount: int,
        reason: str = "gain"
    ) -> Tuple[CharacterState, ResourceChange]:
        """Add to a pool; capped at max"""
        return self._change_resource(state, kind, amount, spending=False, reason=reason)

    def regenerate_resources(self, state: CharacterState) -> Tuple[CharacterState, List[ResourceChange]]:
        """Credit regeneration for the time since each pool was last updated"""
        now = self.clock.now()
        work = self._working_copy(state)
        changes = []
        for kind, pool in state.resources.items():
            updated = resource_system.regenerate_since(pool, now)
            work.resources[kind] = updated
            if updated.current != pool.current:
                changes.append(ResourceChange(
                    kind=kind,
                    before=pool.current,
                    after=updated.current,
                    requested=updated.current - pool.current,
                    reason="regeneration",
                ))
        work.updated_at = now
        return work, changes

    # ==========================================
    # Read-only views
    # ==========================================

    def character_sheet(self, state: CharacterState) -> CharacterSheet:
        """Level progress, effective stats, resources, active buffs and overdue items at now"""
        now = self.clock.now()
        character = state.character
        progress = xp_system.level_progress(character.total_xp)

        stats = character.base_stats()
        for stat, boost in buff_system.total_stat_boost(state.buffs, now).items():
            stats[stat] = max(0, min(STAT_MAX_VALUE, stats[stat] + boost))

        active = [
            {
                "id": buff.id,
                "name": buff.name,
                "kind": buff.kind.value,
                "stack_count": buff.stack_count,
                "expires_at": buff.expires_at.isoformat(),
                "expires": format_relative_time(buff.expires_at, now),
            }
            for buff in buff_system.active_buffs(state.buffs, now)
        ]

        return CharacterSheet(
            character_id=character.id,
            name=character.name,
            character_class=character.character_class.value,
            level=progress["current_level"],
            total_xp=character.total_xp,
            xp_in_current_level=progress["xp_in_current_level"],
            xp_to_next_level=progress["xp_to_next_level"],
            next_level_xp=progress["next_level_xp"],
            progress_percent=progress["progress_percent"],
            gold=character.gold,
            wisdom_points=character.wisdom_points,
            stats=stats,
            resources={
                kind.value: {
                    "current": pool.current,
                    "max": pool.max,
                    "regen_rate_per_hour": pool.regen_rate_per_hour,
                }
                for kind, pool in state.resources.items()
            },
            active_buffs=active,
            overdue_items=sorted(
                item.name for item in state.recurring.values() if streak_system.is_overdue(item, now)
            ),
            achievements_unlocked=sum(1 for a in state.achievements.values() if a.unlocked),
            achievements_total=len(state.achievements),
        )
