"""
Catalog

Read-only definitions the engine instantiates from: quest templates,
recurring items (basic needs, daily quests, reflections), buff combos and
achievements. default_catalog() ships the built-in set; load_catalog() reads
the same shape from a JSON file.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union
import logging

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator

from lifequest.exceptions import ConfigurationError, NotFoundError
from lifequest.gamification import quest_system, resource_system
from lifequest.models.achievement import Achievement, AchievementCategory, ProgressCounter, Rarity
from lifequest.models.buff import BuffCombo, BuffKind
from lifequest.models.character import Character, CharacterClass
from lifequest.models.quest import Difficulty, Quest, QuestType
from lifequest.models.recurring import NeedCategory, Priority, RecurringItem, RecurringKind
from lifequest.models.resource import ResourceKind
from lifequest.models.reward import ResourceReward, Reward, SkillTreeCredit
from lifequest.models.state import CharacterState

logger = logging.getLogger(__name__)


class ObjectiveTemplate(BaseModel):
    text: str = Field(min_length=1)
    is_required: bool = True
    xp_reward: int = Field(default=10, ge=0)


class QuestTemplate(BaseModel):
    key: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    quest_type: QuestType = QuestType.SIDE
    difficulty: Difficulty = Difficulty.NORMAL
    xp_reward: int = Field(default=50, ge=0)
    gold_reward: Optional[int] = Field(default=None, ge=0)
    time_limit_minutes: Optional[int] = Field(default=None, gt=0)
    energy_cost: int = Field(default=0, ge=0)
    rewards: List[Reward] = Field(default_factory=list)
    objectives: List[ObjectiveTemplate] = Field(default_factory=list)


class RecurringTemplate(BaseModel):
    key: str = Field(min_length=1)
    name: str = Field(min_length=1)
    kind: RecurringKind
    ideal_cadence_hours: float = Field(gt=0)
    xp_reward: int = Field(default=3, ge=0)
    category: Optional[NeedCategory] = None
    priority: Priority = Priority.MEDIUM
    resource_rewards: List[ResourceReward] = Field(default_factory=list)
    wisdom_points: int = Field(default=0, ge=0)


class ComboTemplate(BaseModel):
    key: str = Field(min_length=1)
    name: str = Field(min_length=1)
    required_kinds: List[BuffKind] = Field(min_length=2)
    bonus_xp: int = Field(default=50, ge=0)


class AchievementTemplate(BaseModel):
    key: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    category: AchievementCategory
    rarity: Rarity = Rarity.COMMON
    counter: ProgressCounter
    progress_required: int = Field(ge=1)
    xp_reward: int = Field(default=0, ge=0)


class Catalog(BaseModel):
    """Everything a new character is seeded from. Keys are unique per section."""
    quest_templates: List[QuestTemplate] = Field(default_factory=list)
    recurring_items: List[RecurringTemplate] = Field(default_factory=list)
    combos: List[ComboTemplate] = Field(default_factory=list)
    achievements: List[AchievementTemplate] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_keys(self) -> "Catalog":
        for section in ("quest_templates", "recurring_items", "combos", "achievements"):
            keys = [entry.key for entry in getattr(self, section)]
            duplicates = sorted({key for key in keys if keys.count(key) > 1})
            if duplicates:
                raise ValueError(f"Duplicate keys in {section}: {', '.join(duplicates)}")
        return self

    def get_quest_template(self, key: str) -> QuestTemplate:
        for template in self.quest_templates:
            if template.key == key:
                return template
        raise NotFoundError(
            f"Quest template '{key}' not found",
            record_type="QuestTemplate",
            record_id=key,
        )


def instantiate_quest(template: QuestTemplate, now: datetime, quest_id: Optional[str] = None) -> Quest:
    """Fresh available quest built from a template"""
    return quest_system.create_quest(
        name=template.name,
        description=template.description,
        quest_type=template.quest_type,
        difficulty=template.difficulty,
        xp_reward=template.xp_reward,
        gold_reward=template.gold_reward,
        time_limit_minutes=template.time_limit_minutes,
        energy_cost=template.energy_cost,
        rewards=[reward.model_copy() for reward in template.rewards],
        objectives=[(obj.text, obj.is_required, obj.xp_reward) for obj in template.objectives],
        quest_id=quest_id,
        now=now,
    )


def instantiate_recurring(template: RecurringTemplate) -> RecurringItem:
    return RecurringItem(
        id=template.key,
        name=template.name,
        kind=template.kind,
        ideal_cadence_hours=template.ideal_cadence_hours,
        xp_reward=template.xp_reward,
        category=template.category,
        priority=template.priority,
        resource_rewards=[reward.model_copy() for reward in template.resource_rewards],
        wisdom_points=template.wisdom_points,
    )


def instantiate_combo(template: ComboTemplate) -> BuffCombo:
    return BuffCombo(
        id=template.key,
        name=template.name,
        required_kinds=list(template.required_kinds),
        bonus_xp=template.bonus_xp,
    )


def instantiate_achievement(template: AchievementTemplate) -> Achievement:
    return Achievement(
        id=template.key,
        name=template.name,
        description=template.description,
        icon=template.icon,
        category=template.category,
        rarity=template.rarity,
        counter=template.counter,
        progress_required=template.progress_required,
        xp_reward=template.xp_reward,
    )


def new_character_state(
    character_id: str,
    name: str,
    character_class: CharacterClass,
    catalog: "Catalog",
    now: datetime
) -> CharacterState:
    """
    Seed a brand new character

    Recurring items, combos and achievements come from the catalog and are
    keyed by their catalog key. Quest templates are not instantiated; quests
    are added on demand.
    """
    character = Character(
        id=character_id,
        name=name,
        character_class=character_class,
        created_at=now,
    )
    state = CharacterState(
        character=character,
        resources=resource_system.starting_pools(character_class, now),
        recurring={t.key: instantiate_recurring(t) for t in catalog.recurring_items},
        combos={t.key: instantiate_combo(t) for t in catalog.combos},
        achievements={t.key: instantiate_achievement(t) for t in catalog.achievements},
        updated_at=now,
    )
    logger.info(
        f"Created character {character_id} ({character_class.value}) with "
        f"{len(state.recurring)} recurring items and {len(state.achievements)} achievements"
    )
    return state


def load_catalog(path: Union[str, Path]) -> Catalog:
    """
    Read a catalog from a JSON file

    Raises:
        ConfigurationError: file missing or content does not validate
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read catalog file {path}: {e}",
            config_key="CATALOG_PATH",
            cause=e,
        )

    try:
        catalog = Catalog.model_validate_json(raw)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid catalog file {path}: {e.error_count()} validation error(s)",
            config_key="CATALOG_PATH",
            cause=e,
        )

    logger.info(
        f"Loaded catalog from {path}: {len(catalog.quest_templates)} quest templates, "
        f"{len(catalog.recurring_items)} recurring items, {len(catalog.combos)} combos, "
        f"{len(catalog.achievements)} achievements"
    )
    return catalog


def default_catalog() -> Catalog:
    """Built-in definitions used when no CATALOG_PATH is configured"""
    return Catalog(
        quest_templates=[
            QuestTemplate(
                key="life_rpg_schema",
                name="Complete Life RPG Database Schema",
                description="Design and implement the complete database structure for the Life RPG system",
                quest_type=QuestType.MAIN,
                difficulty=Difficulty.HARD,
                xp_reward=500,
                energy_cost=20,
                rewards=[
                    SkillTreeCredit(tree="career", xp=300),
                    SkillTreeCredit(tree="learning", xp=200),
                ],
                objectives=[
                    ObjectiveTemplate(text="Design character and stats system", xp_reward=50),
                    ObjectiveTemplate(text="Create skill trees and progression", xp_reward=50),
                    ObjectiveTemplate(text="Implement quest and objectives system", xp_reward=50),
                    ObjectiveTemplate(text="Add ADHD support features", xp_reward=50),
                    ObjectiveTemplate(text="Create brain dump processing system", xp_reward=50),
                    ObjectiveTemplate(text="Generate and apply migrations", xp_reward=50),
                    ObjectiveTemplate(text="Create seed data", xp_reward=50),
                    ObjectiveTemplate(text="Build basic UI components", is_required=False, xp_reward=100),
                ],
            ),
            QuestTemplate(
                key="dev_environment",
                name="Set Up Development Environment",
                description="Configure all tools and dependencies for the project",
                quest_type=QuestType.SIDE,
                difficulty=Difficulty.NORMAL,
                xp_reward=150,
                energy_cost=10,
                rewards=[SkillTreeCredit(tree="career", xp=150)],
            ),
            QuestTemplate(
                key="daily_reflection_practice",
                name="Daily Reflection Practice",
                description="Establish a consistent daily reflection routine",
                quest_type=QuestType.DAILY,
                difficulty=Difficulty.EASY,
                xp_reward=25,
                time_limit_minutes=24 * 60,
                rewards=[SkillTreeCredit(tree="learning", xp=25)],
            ),
        ],
        recurring_items=[
            RecurringTemplate(key="shower", name="Shower", kind=RecurringKind.BASIC_NEED,
                              ideal_cadence_hours=24, xp_reward=5,
                              category=NeedCategory.HYGIENE, priority=Priority.MEDIUM),
            RecurringTemplate(key="eat_breakfast", name="Eat Breakfast", kind=RecurringKind.BASIC_NEED,
                              ideal_cadence_hours=24, xp_reward=8,
                              category=NeedCategory.NUTRITION, priority=Priority.HIGH,
                              resource_rewards=[ResourceReward(resource=ResourceKind.ENERGY, amount=10)]),
            RecurringTemplate(key="drink_water", name="Drink Water", kind=RecurringKind.BASIC_NEED,
                              ideal_cadence_hours=2, xp_reward=3,
                              category=NeedCategory.HYDRATION, priority=Priority.CRITICAL,
                              resource_rewards=[ResourceReward(resource=ResourceKind.FOCUS, amount=2)]),
            RecurringTemplate(key="take_medication", name="Take Medication", kind=RecurringKind.BASIC_NEED,
                              ideal_cadence_hours=24, xp_reward=10,
                              category=NeedCategory.MEDICATION, priority=Priority.CRITICAL,
                              resource_rewards=[ResourceReward(resource=ResourceKind.FOCUS, amount=5)]),
            RecurringTemplate(key="light_exercise", name="Light Exercise", kind=RecurringKind.BASIC_NEED,
                              ideal_cadence_hours=24, xp_reward=15,
                              category=NeedCategory.MOVEMENT, priority=Priority.MEDIUM,
                              resource_rewards=[ResourceReward(resource=ResourceKind.MOTIVATION, amount=5)]),
            RecurringTemplate(key="brush_teeth", name="Brush Teeth", kind=RecurringKind.BASIC_NEED,
                              ideal_cadence_hours=12, xp_reward=5,
                              category=NeedCategory.HYGIENE, priority=Priority.HIGH),
            RecurringTemplate(key="morning_intention", name="Morning Intention Setting",
                              kind=RecurringKind.DAILY_QUEST, ideal_cadence_hours=24, xp_reward=15),
            RecurringTemplate(key="evening_reflection", name="Evening Reflection",
                              kind=RecurringKind.DAILY_QUEST, ideal_cadence_hours=24, xp_reward=20),
            RecurringTemplate(key="hydration_check", name="Hydration Check",
                              kind=RecurringKind.DAILY_QUEST, ideal_cadence_hours=24, xp_reward=10),
            RecurringTemplate(key="movement_break", name="Movement Break",
                              kind=RecurringKind.DAILY_QUEST, ideal_cadence_hours=24, xp_reward=15),
            RecurringTemplate(key="morning_ritual", name="Morning Intention Ritual",
                              kind=RecurringKind.REFLECTION, ideal_cadence_hours=24,
                              xp_reward=25, wisdom_points=5),
            RecurringTemplate(key="evening_wind_down", name="Evening Wind-Down Reflection",
                              kind=RecurringKind.REFLECTION, ideal_cadence_hours=24,
                              xp_reward=30, wisdom_points=8),
        ],
        combos=[
            ComboTemplate(key="fresh_start", name="Fresh Start",
                          required_kinds=[BuffKind.HYGIENE, BuffKind.HYDRATION], bonus_xp=50),
            ComboTemplate(key="fueled_up", name="Fueled Up",
                          required_kinds=[BuffKind.NUTRITION, BuffKind.HYDRATION, BuffKind.MOVEMENT],
                          bonus_xp=75),
            ComboTemplate(key="full_maintenance", name="Full Maintenance",
                          required_kinds=list(BuffKind), bonus_xp=150),
        ],
        achievements=[
            AchievementTemplate(key="first_quest", name="First Steps",
                                description="Complete your first quest", icon="🎯",
                                category=AchievementCategory.QUESTS, rarity=Rarity.COMMON,
                                counter=ProgressCounter.QUESTS_COMPLETED, progress_required=1,
                                xp_reward=25),
            AchievementTemplate(key="early_bird", name="Early Bird",
                                description="Keep any routine going 7 times in a row", icon="🌅",
                                category=AchievementCategory.STREAK, rarity=Rarity.UNCOMMON,
                                counter=ProgressCounter.CURRENT_STREAK, progress_required=7,
                                xp_reward=100),
            AchievementTemplate(key="focus_master", name="Focus Master",
                                description="Complete 25 quest objectives", icon="🧠",
                                category=AchievementCategory.QUESTS, rarity=Rarity.RARE,
                                counter=ProgressCounter.OBJECTIVES_COMPLETED, progress_required=25,
                                xp_reward=250),
            AchievementTemplate(key="quest_completionist", name="Quest Completionist",
                                description="Complete 100 quests", icon="🏆",
                                category=AchievementCategory.QUESTS, rarity=Rarity.EPIC,
                                counter=ProgressCounter.QUESTS_COMPLETED, progress_required=100,
                                xp_reward=500),
            AchievementTemplate(key="reflection_sage", name="Reflection Sage",
                                description="Reflect 30 days in a row", icon="🦉",
                                category=AchievementCategory.REFLECTION, rarity=Rarity.EPIC,
                                counter=ProgressCounter.REFLECTION_STREAK, progress_required=30,
                                xp_reward=750),
            AchievementTemplate(key="life_level_legend", name="Life Level Legend",
                                description="Reach level 50", icon="👑",
                                category=AchievementCategory.PROGRESSION, rarity=Rarity.LEGENDARY,
                                counter=ProgressCounter.CHARACTER_LEVEL, progress_required=50,
                                xp_reward=1000),
            AchievementTemplate(key="self_care_regular", name="Self-Care Regular",
                                description="Take care of 50 basic needs", icon="🛁",
                                category=AchievementCategory.SELF_CARE, rarity=Rarity.UNCOMMON,
                                counter=ProgressCounter.NEEDS_COMPLETED, progress_required=50,
                                xp_reward=100),
            AchievementTemplate(key="power_up", name="Powered Up",
                                description="Activate 10 buffs", icon="⚡",
                                category=AchievementCategory.SELF_CARE, rarity=Rarity.COMMON,
                                counter=ProgressCounter.BUFFS_ACTIVATED, progress_required=10,
                                xp_reward=50),
            AchievementTemplate(key="combo_starter", name="Combo Starter",
                                description="Achieve your first buff combo", icon="🔗",
                                category=AchievementCategory.COMBO, rarity=Rarity.UNCOMMON,
                                counter=ProgressCounter.COMBOS_ACHIEVED, progress_required=1,
                                xp_reward=50),
        ],
    )
