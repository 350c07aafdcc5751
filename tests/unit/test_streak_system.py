"""Unit tests for Streak Tracking System (lifequest/gamification/streak_system.py)"""
import pytest
from datetime import timedelta
from unittest.mock import patch

from lifequest import config
from lifequest.exceptions import AlreadySatisfiedError, InvalidTransitionError
from lifequest.gamification import streak_system
from lifequest.gamification.streak_system import CONTINUED, RESET, STARTED


# ============================================================================
# record_completion
# ============================================================================

def test_first_completion_starts_streak(make_item, now):
    update = streak_system.record_completion(make_item(), now)

    assert update.outcome == STARTED
    assert update.item.streak_count == 1
    assert update.item.best_streak == 1
    assert update.item.completion_count == 1
    assert update.item.last_completed_at == now
    assert update.gap_hours is None


def test_completion_inside_cadence_rejected(make_item, now):
    """cadence 24h, last completed 10h ago -> already satisfied"""
    item = make_item(hours_ago=10, streak=3)

    with pytest.raises(AlreadySatisfiedError) as exc_info:
        streak_system.record_completion(item, now)

    assert isinstance(exc_info.value, InvalidTransitionError)
    assert exc_info.value.rule == "already_satisfied_this_period"
    assert item.streak_count == 3


def test_gap_beyond_cadence_resets_to_one(make_item, now):
    """cadence 24h, last completed 30h ago -> accepted, streak 1"""
    update = streak_system.record_completion(make_item(hours_ago=30, streak=3), now)

    assert update.outcome == RESET
    assert update.old_streak == 3
    assert update.item.streak_count == 1
    assert update.item.best_streak == 3


def test_exactly_one_cadence_continues(make_item, now):
    update = streak_system.record_completion(make_item(hours_ago=24, streak=3), now)

    assert update.outcome == CONTINUED
    assert update.item.streak_count == 4
    assert update.item.best_streak == 4


def test_grace_window_continues_streak(make_item, now):
    update = streak_system.record_completion(make_item(hours_ago=30, streak=3), now, grace_hours=12)

    assert update.outcome == CONTINUED
    assert update.item.streak_count == 4


def test_grace_defaults_to_config(make_item, now):
    with patch.object(config, "STREAK_GRACE_HOURS", 12.0):
        update = streak_system.record_completion(make_item(hours_ago=30, streak=3), now)

    assert update.outcome == CONTINUED


def test_best_streak_never_decreases(make_item, now):
    item = make_item(streak=5, best=9, hours_ago=100)
    gaps = [0, 24, 24, 80, 24]
    instant = now
    for gap in gaps:
        instant = instant + timedelta(hours=gap)
        item = streak_system.record_completion(item, instant).item
        assert item.best_streak >= 9
        assert item.best_streak >= item.streak_count


# ============================================================================
# Derived reads
# ============================================================================

def test_is_overdue_derived_from_timestamp(make_item, now):
    assert streak_system.is_overdue(make_item(), now) is True
    assert streak_system.is_overdue(make_item(hours_ago=10), now) is False
    assert streak_system.is_overdue(make_item(hours_ago=24), now) is False
    assert streak_system.is_overdue(make_item(hours_ago=25), now) is True


def test_effective_streak_zero_once_broken(make_item, now):
    assert streak_system.effective_streak(make_item(hours_ago=30, streak=5), now) == 0
    assert streak_system.effective_streak(make_item(hours_ago=20, streak=5), now) == 5


def test_hours_until_due(make_item, now):
    assert streak_system.hours_until_due(make_item(hours_ago=10), now) == 14.0
    assert streak_system.hours_until_due(make_item(hours_ago=30), now) == 0.0
    assert streak_system.hours_until_due(make_item(), now) == 0.0


def test_can_complete(make_item, now):
    assert streak_system.can_complete(make_item(), now) is True
    assert streak_system.can_complete(make_item(hours_ago=5), now) is False
    assert streak_system.can_complete(make_item(hours_ago=24), now) is True


# ============================================================================
# Bonuses
# ============================================================================

@pytest.mark.parametrize("streak,expected", [(1, 0), (2, 1), (5, 4), (11, 10), (40, 10)])
def test_daily_quest_streak_bonus(streak, expected):
    assert streak_system.daily_quest_streak_bonus(streak) == expected


def test_daily_quest_streak_bonus_custom_cap():
    assert streak_system.daily_quest_streak_bonus(20, cap=3) == 3


def test_milestone_bonus():
    assert streak_system.milestone_bonus(7) == 50
    assert streak_system.milestone_bonus(14) == 100
    assert streak_system.milestone_bonus(30) == 200
    assert streak_system.milestone_bonus(100) == 500
    assert streak_system.milestone_bonus(8) == 0
