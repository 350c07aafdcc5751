"""Unit tests for the Orchestrator (lifequest/gamification/orchestrator.py)"""
import pytest
from datetime import timedelta
from unittest.mock import MagicMock, patch

from lifequest.exceptions import (
    AlreadySatisfiedError,
    IncompleteRequiredObjectivesError,
    NotFoundError,
    QuestExpiredError,
    ValidationError,
)
from lifequest.gamification import quest_system, xp_system
from lifequest.gamification.catalog import (
    AchievementTemplate,
    Catalog,
    ComboTemplate,
    QuestTemplate,
    RecurringTemplate,
    default_catalog,
)
from lifequest.gamification.orchestrator import Orchestrator
from lifequest.models.achievement import AchievementCategory, ProgressCounter
from lifequest.models.buff import BuffKind
from lifequest.models.character import StatName
from lifequest.models.quest import QuestStatus
from lifequest.models.recurring import NeedCategory, RecurringKind
from lifequest.models.resource import ResourceKind
from lifequest.models.reward import ResourceReward, SkillTreeCredit, StatBoostReward, XpReward


def _with_xp(state, total_xp):
    character = state.character.model_copy(
        update={"total_xp": total_xp, "level": xp_system.level_for_xp(total_xp)}
    )
    return state.model_copy(update={"character": character})


def _with_quest(orchestrator, state, quest):
    return orchestrator.add_quest(state, quest)


@pytest.fixture
def routine_catalog():
    """Small catalog with one of each recurring kind and a two-kind combo"""
    return Catalog(
        recurring_items=[
            RecurringTemplate(
                key="drink_water", name="Drink water", kind=RecurringKind.BASIC_NEED,
                ideal_cadence_hours=2, xp_reward=3, category=NeedCategory.HYDRATION,
                resource_rewards=[ResourceReward(resource=ResourceKind.FOCUS, amount=2)],
            ),
            RecurringTemplate(
                key="walk", name="Walk", kind=RecurringKind.DAILY_QUEST,
                ideal_cadence_hours=24, xp_reward=15,
            ),
            RecurringTemplate(
                key="journal", name="Journal", kind=RecurringKind.REFLECTION,
                ideal_cadence_hours=24, xp_reward=25, wisdom_points=5,
            ),
        ],
        combos=[
            ComboTemplate(key="fresh_start", name="Fresh Start",
                          required_kinds=[BuffKind.HYGIENE, BuffKind.HYDRATION], bonus_xp=50),
        ],
    )


@pytest.fixture
def routine(fixed_clock, routine_catalog):
    orchestrator = Orchestrator(clock=fixed_clock, catalog=routine_catalog)
    return orchestrator, orchestrator.create_character("char-1", "Test Hero")


# ============================================================================
# Character lifecycle
# ============================================================================

def test_create_character_defaults(state, now):
    assert state.character.level == 1
    assert state.character.total_xp == 0
    assert state.resources[ResourceKind.ENERGY].current == 80
    assert state.resources[ResourceKind.ENERGY].last_updated == now


@pytest.mark.parametrize("character_id,name", [("", "Hero"), ("c1", "  ")])
def test_create_character_requires_id_and_name(orchestrator, character_id, name):
    with pytest.raises(ValidationError):
        orchestrator.create_character(character_id, name)


# ============================================================================
# Objectives and quests
# ============================================================================

def test_objective_cascade_awards_everything_once(orchestrator, state, sample_quest):
    """Objectives 10 + 20 XP, quest 100 XP and 20 gold, then optional 5 XP"""
    state = _with_quest(orchestrator, state, sample_quest)
    outline, draft, polish = [obj.id for obj in sample_quest.objectives]

    state, first = orchestrator.complete_objective(state, "quest-1", outline)
    assert first.xp_awarded == 10
    assert first.quest_completed is False

    state, second = orchestrator.complete_objective(state, "quest-1", draft)
    assert second.quest_completed is True
    assert second.objective_xp == 20
    assert second.quest_xp == 100
    assert second.gold_awarded == 20
    assert second.xp_awarded == 120
    assert state.character.total_xp == 130
    assert state.character.gold == 20
    assert state.quests["quest-1"].status == QuestStatus.COMPLETED

    state, third = orchestrator.complete_objective(state, "quest-1", polish)
    assert third.quest_completed is False
    assert third.gold_awarded == 0
    assert state.character.total_xp == 135
    assert state.character.gold == 20


def test_quest_rewards_and_energy_cost(orchestrator, state, now):
    quest = quest_system.create_quest(
        "Deep work", xp_reward=50, energy_cost=20, quest_id="deep",
        rewards=[
            XpReward(amount=25),
            ResourceReward(resource=ResourceKind.MOTIVATION, amount=5),
            StatBoostReward(stat=StatName.PRODUCTIVITY, amount=3),
            SkillTreeCredit(tree="career", xp=40),
        ],
        now=now,
    )
    state = _with_quest(orchestrator, state, quest)

    state, result = orchestrator.complete_quest(state, "deep")

    assert result.xp_awarded == 75
    assert state.resources[ResourceKind.ENERGY].current == 60
    assert state.resources[ResourceKind.MOTIVATION].current == 90
    assert state.character.stat_bonuses == {StatName.PRODUCTIVITY: 3}
    assert state.character.skill_tree_xp == {"career": 40}
    deltas = {change.kind: change.delta for change in result.resource_deltas}
    assert deltas == {ResourceKind.MOTIVATION: 5, ResourceKind.ENERGY: -20}


def test_manual_completion_with_open_objectives(orchestrator, state, sample_quest):
    state = _with_quest(orchestrator, state, sample_quest)

    with pytest.raises(IncompleteRequiredObjectivesError):
        orchestrator.complete_quest(state, "quest-1")


def test_failed_event_leaves_state_untouched(orchestrator, state, sample_quest):
    state = _with_quest(orchestrator, state, sample_quest)
    before = state.model_copy(deep=True)
    outline = sample_quest.objectives[0].id

    with patch("lifequest.gamification.xp_system.add_xp", side_effect=RuntimeError("boom")):
        with pytest.raises(RuntimeError):
            orchestrator.complete_objective(state, "quest-1", outline)

    assert state == before
    assert state.quests["quest-1"].objectives[0].is_completed is False


def test_unknown_quest(orchestrator, state):
    with pytest.raises(NotFoundError):
        orchestrator.complete_objective(state, "missing", "obj")


def test_duplicate_quest_rejected(orchestrator, state, sample_quest):
    state = _with_quest(orchestrator, state, sample_quest)

    with pytest.raises(ValidationError):
        orchestrator.add_quest(state, sample_quest)


def test_inconsistent_quest_rejected(orchestrator, state, sample_quest, now):
    finished_early = sample_quest.model_copy(update={"completed_at": now})

    with pytest.raises(ValidationError):
        orchestrator.add_quest(state, finished_early)
    assert state.quests == {}


def test_start_and_abandon(orchestrator, state, sample_quest):
    state = _with_quest(orchestrator, state, sample_quest)

    state, quest = orchestrator.start_quest(state, "quest-1")
    assert quest.status == QuestStatus.ACTIVE

    state, quest = orchestrator.abandon_quest(state, "quest-1")
    assert state.quests["quest-1"].status == QuestStatus.ABANDONED


def test_expire_quests(orchestrator, state, fixed_clock):
    quest = quest_system.create_quest("Timed", time_limit_minutes=30, quest_id="timed",
                                      objectives=[("Step", True, 10)])
    state = _with_quest(orchestrator, state, quest)
    state, _ = orchestrator.start_quest(state, "timed")

    fixed_clock.advance(hours=1)
    with pytest.raises(QuestExpiredError):
        orchestrator.complete_objective(state, "timed", quest.objectives[0].id)

    state, result = orchestrator.expire_quests(state)

    assert result.failed_quest_ids == ["timed"]
    assert result.xp_awarded == 0
    assert state.quests["timed"].status == QuestStatus.FAILED


def test_add_quest_from_template(fixed_clock, state):
    orchestrator = Orchestrator(clock=fixed_clock, catalog=Catalog(
        quest_templates=[QuestTemplate(key="tidy", name="Tidy desk", xp_reward=30)]
    ))

    state, quest = orchestrator.add_quest_from_template(state, "tidy", quest_id="tidy-1")

    assert state.quests["tidy-1"].name == "Tidy desk"
    assert quest.xp_reward == 30
    with pytest.raises(NotFoundError):
        orchestrator.add_quest_from_template(state, "missing")


# ============================================================================
# Levels and achievements
# ============================================================================

def test_level_up_reported_once(orchestrator, state, sample_quest):
    state = _with_quest(orchestrator, _with_xp(state, 1090), sample_quest)

    state, result = orchestrator.complete_objective(state, "quest-1", sample_quest.objectives[0].id)

    assert result.leveled_up is True
    assert result.levels_gained == 1
    assert result.new_level == 2
    assert state.character.level == 2
    assert state.character.total_xp == 1100


def test_achievement_xp_is_a_second_progression_call(fixed_clock, now):
    orchestrator = Orchestrator(clock=fixed_clock, catalog=Catalog(achievements=[
        AchievementTemplate(key="first_quest", name="First Quest", category=AchievementCategory.QUESTS,
                            counter=ProgressCounter.QUESTS_COMPLETED, progress_required=1, xp_reward=100),
    ]))
    state = _with_xp(orchestrator.create_character("c1", "Hero"), 1000)
    state = orchestrator.add_quest(state, quest_system.create_quest("Call mom", xp_reward=50, quest_id="call"))

    with patch("lifequest.gamification.xp_system.add_xp", wraps=xp_system.add_xp) as spy:
        state, result = orchestrator.complete_quest(state, "call")

    assert [c.args[1] for c in spy.call_args_list] == [50, 100]
    assert result.achievement_xp == 100
    assert result.xp_awarded == 150
    assert result.leveled_up is True
    assert result.new_level == 2
    assert [a.achievement_id for a in result.achievements_unlocked] == ["first_quest"]
    assert state.achievements["first_quest"].unlocked_at == now


def test_achievements_see_post_level_state(fixed_clock, sample_quest):
    orchestrator = Orchestrator(clock=fixed_clock, catalog=Catalog(achievements=[
        AchievementTemplate(key="level_two", name="Level Two", category=AchievementCategory.PROGRESSION,
                            counter=ProgressCounter.CHARACTER_LEVEL, progress_required=2, xp_reward=10),
    ]))
    state = _with_xp(orchestrator.create_character("c1", "Hero"), 1090)
    state = orchestrator.add_quest(state, sample_quest)

    state, result = orchestrator.complete_objective(state, "quest-1", sample_quest.objectives[0].id)

    assert [a.achievement_id for a in result.achievements_unlocked] == ["level_two"]
    assert state.character.total_xp == 1110

    # Already unlocked: never paid again
    state, result = orchestrator.complete_objective(state, "quest-1", sample_quest.objectives[1].id)
    assert result.achievements_unlocked == []
    assert result.achievement_xp == 0


def test_drifted_level_is_corrected_by_any_event(orchestrator, state):
    drifted = state.model_copy(update={"character": state.character.model_copy(update={"level": 9})})

    expired, _ = orchestrator.expire_quests(drifted)
    spent, _ = orchestrator.spend_resource(drifted, ResourceKind.FOCUS, 1)

    assert expired.character.level == 1
    assert spent.character.level == 1
    assert drifted.character.level == 9


# ============================================================================
# Recurring items
# ============================================================================

def test_complete_need(routine):
    orchestrator, state = routine

    state, result = orchestrator.complete_need(state, "drink_water")

    assert result.is_overdue is True
    assert result.xp == 3
    assert result.new_streak == 1
    assert result.streak_outcome == "started"
    assert state.resources[ResourceKind.FOCUS].current == 72

    with pytest.raises(AlreadySatisfiedError):
        orchestrator.complete_need(state, "drink_water")


def test_need_milestone_bonus(routine, now):
    orchestrator, state = routine
    item = state.recurring["drink_water"].model_copy(update={
        "streak_count": 6, "best_streak": 6, "last_completed_at": now - timedelta(hours=2),
    })
    state.recurring["drink_water"] = item

    state, result = orchestrator.complete_need(state, "drink_water")

    assert result.is_overdue is False
    assert result.new_streak == 7
    assert result.milestone_bonus == 50
    assert result.xp == 53
    assert state.character.total_xp == 53


def test_complete_need_rejects_other_kinds(routine):
    orchestrator, state = routine

    with pytest.raises(ValidationError):
        orchestrator.complete_need(state, "walk")
    with pytest.raises(NotFoundError):
        orchestrator.complete_need(state, "missing")


def test_daily_quest_streak_bonus(routine, now):
    orchestrator, state = routine
    state.recurring["walk"] = state.recurring["walk"].model_copy(update={
        "streak_count": 4, "best_streak": 4, "last_completed_at": now - timedelta(hours=24),
    })

    state, result = orchestrator.complete_daily_quest(state, "walk")

    assert result.new_streak == 5
    assert result.streak_bonus == 4
    assert result.xp == 19
    assert "streak bonus +4" in result.message


def test_reflection_grants_wisdom(routine):
    orchestrator, state = routine

    state, result = orchestrator.complete_daily_quest(state, "journal")

    assert result.wisdom_points == 5
    assert state.character.wisdom_points == 5
    assert result.xp == 25


def test_daily_quest_rejects_needs(routine):
    orchestrator, state = routine

    with pytest.raises(ValidationError):
        orchestrator.complete_daily_quest(state, "drink_water")


# ============================================================================
# Buffs
# ============================================================================

def test_buff_stack_and_combo(routine, fixed_clock):
    orchestrator, state = routine

    state, shower = orchestrator.activate_buff(state, "Shower", BuffKind.HYGIENE, duration_minutes=60)
    assert shower.xp == 15
    assert shower.combos_achieved == []

    fixed_clock.advance(minutes=10)
    state, water = orchestrator.activate_buff(state, "Water", BuffKind.HYDRATION, duration_minutes=60)
    assert water.xp == 10
    assert water.combos_achieved == ["fresh_start"]
    assert water.combo_xp == 50
    assert water.xp_awarded == 60

    fixed_clock.advance(minutes=10)
    state, again = orchestrator.activate_buff(state, "Shower", BuffKind.HYGIENE, duration_minutes=60)
    assert again.stacked is True
    assert again.stack_count == 2
    assert again.combos_achieved == []

    assert state.character.total_xp == 15 + 60 + 15
    assert state.totals.buffs_activated == 3
    assert state.totals.combos_achieved == 1
    assert state.combos["fresh_start"].times_achieved == 1


def test_buff_duration_defaults_to_config(orchestrator, state, now):
    with patch("lifequest.config.DEFAULT_BUFF_DURATION_MINUTES", 90):
        state, result = orchestrator.activate_buff(state, "Stretch", BuffKind.MOVEMENT)

    assert result.expires_at == now + timedelta(minutes=90)
    assert result.xp == 37


def test_deactivate_and_housekeeping(orchestrator, state, fixed_clock):
    state, shower = orchestrator.activate_buff(state, "Shower", BuffKind.HYGIENE, duration_minutes=30)
    state, water = orchestrator.activate_buff(state, "Water", BuffKind.HYDRATION, duration_minutes=120)

    state = orchestrator.deactivate_buff(state, water.buff_id)
    fixed_clock.advance(minutes=45)

    state, removed = orchestrator.housekeeping(state)

    assert removed == 2
    assert state.buffs == {}
    assert state.totals.buffs_activated == 2


# ============================================================================
# Resources
# ============================================================================

def test_spend_clamps_at_zero(orchestrator, state):
    state, change = orchestrator.spend_resource(state, ResourceKind.SPOONS, 20)

    assert change.after == 0
    assert change.delta == -8
    assert change.clamped is True
    assert state.resources[ResourceKind.SPOONS].current == 0


def test_gain_caps_at_max(orchestrator, state):
    state, change = orchestrator.gain_resource(state, ResourceKind.ENERGY, 50)

    assert state.resources[ResourceKind.ENERGY].current == 100
    assert change.delta == 20


def test_regenerate_after_two_hours(orchestrator, state, fixed_clock):
    fixed_clock.advance(hours=2)

    state, changes = orchestrator.regenerate_resources(state)

    assert state.resources[ResourceKind.ENERGY].current == 90
    assert state.resources[ResourceKind.FOCUS].current == 76
    assert state.resources[ResourceKind.MOTIVATION].current == 89
    assert state.resources[ResourceKind.SPOONS].current == 10
    assert len(changes) == 4
    assert all(change.reason == "regeneration" for change in changes)


def test_spend_starts_from_regenerated_pool(orchestrator, state, fixed_clock):
    fixed_clock.advance(hours=100)

    state, change = orchestrator.spend_resource(state, ResourceKind.ENERGY, 80)

    assert change.before == 100
    assert state.resources[ResourceKind.ENERGY].current == 20

    state, changes = orchestrator.regenerate_resources(state)
    assert state.resources[ResourceKind.ENERGY].current == 20
    assert ResourceKind.ENERGY not in [change.kind for change in changes]

    fixed_clock.advance(hours=2)
    state, _ = orchestrator.regenerate_resources(state)
    assert state.resources[ResourceKind.ENERGY].current == 30


def test_gain_does_not_double_credit_idle_time(orchestrator, state, fixed_clock):
    fixed_clock.advance(hours=2)

    state, change = orchestrator.gain_resource(state, ResourceKind.FOCUS, 1)
    state, changes = orchestrator.regenerate_resources(state)

    assert change.before == 76
    assert state.resources[ResourceKind.FOCUS].current == 77
    assert ResourceKind.FOCUS not in [change.kind for change in changes]


def test_quest_energy_cost_after_idle_time(orchestrator, state, fixed_clock):
    state = _with_quest(orchestrator, state, quest_system.create_quest("Gym", energy_cost=20, quest_id="gym"))
    fixed_clock.advance(hours=10)

    state, result = orchestrator.complete_quest(state, "gym")
    assert state.resources[ResourceKind.ENERGY].current == 80
    assert result.resource_deltas[0].before == 100

    state, _ = orchestrator.regenerate_resources(state)
    assert state.resources[ResourceKind.ENERGY].current == 80


# ============================================================================
# Views and clock
# ============================================================================

def test_character_sheet(routine, fixed_clock):
    orchestrator, state = routine
    state, _ = orchestrator.activate_buff(
        state, "Walk outside", BuffKind.MOVEMENT, {StatName.WELLNESS: 5, StatName.LEARNING: 50}, 60
    )
    state, _ = orchestrator.complete_need(state, "drink_water")

    sheet = orchestrator.character_sheet(state)

    assert sheet.stats[StatName.WELLNESS] == 55
    assert sheet.stats[StatName.LEARNING] == 100
    assert sheet.stats[StatName.PRODUCTIVITY] == 55
    assert [buff["name"] for buff in sheet.active_buffs] == ["Walk outside"]
    assert sheet.active_buffs[0]["expires"] == "in 1h"
    assert sheet.overdue_items == ["Journal", "Walk"]
    assert sheet.total_xp == 28
    assert sheet.next_level_xp == 1100

    fixed_clock.advance(hours=2)
    assert orchestrator.character_sheet(state).active_buffs == []


def test_clock_read_once_per_event(state, sample_quest, now):
    clock = MagicMock()
    clock.now.return_value = now
    orchestrator = Orchestrator(clock=clock, catalog=default_catalog())
    state = state.model_copy(update={"quests": {"quest-1": sample_quest}})

    orchestrator.complete_objective(state, "quest-1", sample_quest.objectives[0].id)

    assert clock.now.call_count == 1
