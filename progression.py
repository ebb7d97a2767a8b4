# progression.py
"""Progression engine: what completing a habit earns.

Pure computation. Callers load the user and habit, call `compute_completion`,
and persist the two patches it returns inside one transaction.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping

from day_boundary import ensure_aware
from errors import AlreadyCompletedToday
from models import (
    BADGE_HABIT_STREAK,
    BADGE_WEALTH_BUILDER,
    HAPPINESS_MAX,
    STATUS_COMPLETE,
    Habit,
    User,
    UserBadge,
)

REWARD_PER_STREAK_DAY = 10
HAPPINESS_PER_COMPLETION = 5
COMPLETION_WINDOW = timedelta(days=1)


@dataclass
class CompletionResult:
    habit_update: Dict[str, Any]
    user_update: Dict[str, Any]
    reward: int
    promotions: Dict[str, int] = field(default_factory=dict)


def completed_recently(habit: Habit, now: datetime) -> bool:
    """True when the habit is complete and was marked so less than a day ago."""
    return habit.is_complete and ensure_aware(now) - habit.last_updated < COMPLETION_WINDOW


def promote_badges(badges: List[UserBadge], catalog, metrics: Mapping[str, Any]):
    """Apply monotonic tier promotion for each badge/metric pair.

    Returns (new badge list, {badge_id: new_tier}) without mutating `badges`.
    """
    updated = [UserBadge(b.badge_id, b.highest_tier_achieved) for b in badges]
    promotions = {}
    for badge_id, metric in metrics.items():
        tier = catalog.highest_tier(badge_id, metric)
        if tier is None:
            continue
        record = next((b for b in updated if b.badge_id == badge_id), None)
        if record is None:
            updated.append(UserBadge(badge_id, tier))
            promotions[badge_id] = tier
        elif tier > record.highest_tier_achieved:
            record.highest_tier_achieved = tier
            promotions[badge_id] = tier
    return updated, promotions


def compute_completion(user: User, habit: Habit, catalog, now: datetime) -> CompletionResult:
    """Compute the next habit and user state for one completion.

    Raises:
        AlreadyCompletedToday: the habit was completed within the last day.
    """
    now = ensure_aware(now)
    if completed_recently(habit, now):
        raise AlreadyCompletedToday(habit.id)

    # No gap check: a streak left idle still grows here; only the nightly reset breaks it.
    new_streak = habit.streak + 1
    reward = REWARD_PER_STREAK_DAY * new_streak
    new_total_earned = user.total_currency_earned + reward

    badges, promotions = promote_badges(
        user.badges,
        catalog,
        {BADGE_HABIT_STREAK: new_streak, BADGE_WEALTH_BUILDER: new_total_earned},
    )

    habit_update = {
        "streak": new_streak,
        "status": STATUS_COMPLETE,
        "lastUpdated": now,
    }
    user_update = {
        "currency": user.currency + reward,
        "totalCurrencyEarned": new_total_earned,
        "happinessMeter": min(user.happiness_meter + HAPPINESS_PER_COMPLETION, HAPPINESS_MAX),
        "longestCurrentStreak": max(user.longest_current_streak, new_streak),
        "longestObtainedStreak": max(user.longest_obtained_streak, new_streak),
        "badges": [b.to_dict() for b in badges],
    }
    return CompletionResult(habit_update, user_update, reward, promotions)
