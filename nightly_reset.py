# nightly_reset.py
"""Nightly reset: roll every habit back to pending and settle the day.

Pending habits lose their streak, completed ones become pending again, the
pet loses 10 happiness per missed habit, and `longestCurrentStreak` is
recomputed from the day's completions. `longestObtainedStreak` is never
touched here.

Each user is reset in its own transaction against a snapshot time `as_of`:
habits changed after `as_of` belong to the next day and are left alone. The
snapshot is recorded on the user as `lastResetAt`; a run whose snapshot is not
later than that is skipped, so re-running the job for the same cutoff never
double-penalises anyone, while a later cutoff still gets its own reset.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from day_boundary import DayBoundary, ensure_aware, utc_now
from errors import PreconditionFailed
from models import HAPPINESS_MAX, HAPPINESS_MIN, STATUS_PENDING, Habit, to_datetime

logger = logging.getLogger(__name__)

HAPPINESS_PENALTY_PER_MISS = 10


@dataclass
class ResetPlan:
    habit_updates: Dict[str, Dict[str, Any]]
    user_update: Dict[str, Any]
    pending_count: int
    completed_today: int


@dataclass
class ResetSummary:
    day: date
    reset: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def plan_user_reset(
    user_id: str,
    user_doc: Dict[str, Any],
    habits: List[Tuple[str, Dict[str, Any]]],
    day: date,
    as_of: datetime,
    boundary: DayBoundary,
) -> Optional[ResetPlan]:
    """Work out one user's reset. Returns None if the user was already reset at or after `as_of`.

    Raises PreconditionFailed if any habit is malformed.
    """
    as_of = ensure_aware(as_of)
    last_reset_at = to_datetime(user_doc.get("lastResetAt"))
    if last_reset_at is not None and last_reset_at >= as_of:
        return None

    happiness = user_doc.get("happinessMeter")
    if happiness is None:
        happiness = HAPPINESS_MAX

    habit_updates = {}
    pending_count = 0
    completed_today = 0
    longest_today = 0

    for habit_id, doc in habits:
        habit = Habit.from_dict(habit_id, doc)
        if habit.last_updated > as_of:
            continue

        if habit.status == STATUS_PENDING:
            pending_count += 1
            if habit.streak != 0:
                habit_updates[habit_id] = {"streak": 0}
            continue

        if boundary.is_on_day(habit.last_updated, day):
            completed_today += 1
            longest_today = max(longest_today, habit.streak)
        habit_updates[habit_id] = {"status": STATUS_PENDING}

    user_update = {
        "happinessMeter": max(happiness - HAPPINESS_PENALTY_PER_MISS * pending_count, HAPPINESS_MIN),
        "longestCurrentStreak": longest_today if completed_today else 0,
        "lastResetDay": day.isoformat(),
        "lastResetAt": as_of,
    }
    return ResetPlan(habit_updates, user_update, pending_count, completed_today)


class NightlyResetJob:
    """Apply the nightly reset to every user, independently and in parallel."""

    def __init__(self, store, boundary: DayBoundary, max_workers: int = 8,
                 clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.boundary = boundary
        self.max_workers = max_workers
        self.clock = clock
        self.last_summary: Optional[ResetSummary] = None

    def reset_user(self, user_id: str, day: date, as_of: datetime) -> bool:
        """Reset one user inside a transaction. Returns False if there was nothing to do."""

        def _reset(txn) -> bool:
            user_doc = txn.get_user(user_id)
            if user_doc is None:
                return False
            habits = txn.list_habits(user_id)
            plan = plan_user_reset(user_id, user_doc, habits, day, as_of, self.boundary)
            if plan is None:
                return False
            for habit_id, patch in plan.habit_updates.items():
                txn.update_habit(user_id, habit_id, patch)
            txn.update_user(user_id, plan.user_update)
            logger.debug(
                "[nightly_reset] user=%s pending=%d completed_today=%d",
                user_id, plan.pending_count, plan.completed_today,
            )
            return True

        return self.store.run_transaction(_reset)

    def run(self, as_of: Optional[datetime] = None):
        """Reset all users for the day closing at `as_of` (defaults to now)."""
        as_of = ensure_aware(as_of or self.clock())
        day = self.boundary.closing_day(as_of)
        summary = ResetSummary(day=day)
        users = self.store.list_users()
        logger.info("[nightly_reset] closing %s for %d users (as_of=%s)", day, len(users), as_of.isoformat())

        with ThreadPoolExecutor(max_workers=max(1, self.max_workers)) as pool:
            futures = {pool.submit(self.reset_user, user_id, day, as_of): user_id for user_id, _ in users}
            for future in as_completed(futures):
                user_id = futures[future]
                try:
                    changed = future.result()
                except PreconditionFailed as e:
                    logger.warning("[nightly_reset] skipping user %s: %s", user_id, e)
                    summary.failed.append(user_id)
                except Exception:
                    logger.exception("[nightly_reset] failed to reset user %s", user_id)
                    summary.failed.append(user_id)
                else:
                    (summary.reset if changed else summary.skipped).append(user_id)

        self.last_summary = summary
        logger.info(
            "[nightly_reset] %s done: %d reset, %d skipped, %d failed",
            day, len(summary.reset), len(summary.skipped), len(summary.failed),
        )
