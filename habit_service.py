# habit_service.py
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from day_boundary import utc_now
from errors import AlreadyCompletedToday, InvalidRequest, NotFound
from models import STATUS_PENDING, Habit, User
from progression import compute_completion

logger = logging.getLogger(__name__)

MAX_HABIT_NAME_LENGTH = 100


@dataclass
class CompletionOutcome:
    """What a completion request did.

    `completed` is False only for the benign already-completed-today case, in
    which nothing was written.
    """

    habit_id: str
    completed: bool
    message: str
    streak: int = 0
    reward: int = 0
    currency: int = 0
    happiness: float = 0
    promotions: Dict[str, int] = field(default_factory=dict)


class HabitService:
    """Habit creation, listing, deletion and completion for one store."""

    def __init__(self, store, catalog, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.catalog = catalog
        self.clock = clock

    def create_habit(self, user_id: str, name: str) -> str:
        """
        Create a new pending habit.

        Args:
            user_id: owner of the habit
            name: display name, unique per user ignoring case

        Returns:
            the new habit id
        """
        name = (name or "").strip()
        if not name:
            raise InvalidRequest("Please enter a habit name")
        if len(name) > MAX_HABIT_NAME_LENGTH:
            raise InvalidRequest(f"Habit name cannot be longer than {MAX_HABIT_NAME_LENGTH} characters")
        if self.store.get_user(user_id) is None:
            raise NotFound("User", user_id)

        existing = self.store.list_habits(user_id)
        if any((doc.get("name") or "").lower() == name.lower() for _, doc in existing):
            raise InvalidRequest("This habit already exists")

        now = self.clock()
        habit_id = self.store.add_habit(user_id, {
            "name": name,
            "streak": 0,
            "status": STATUS_PENDING,
            "lastUpdated": now,
            "createdAt": now,
        })
        logger.info("[create_habit] user=%s habit=%s name=%r", user_id, habit_id, name)
        return habit_id

    def list_habits(self, user_id: str) -> List[Dict[str, Any]]:
        """Habits in creation order, each with its id."""
        habits = []
        for habit_id, doc in self.store.list_habits(user_id):
            doc["id"] = habit_id
            habits.append(doc)
        return habits

    def delete_habit(self, user_id: str, habit_id: str):
        if self.store.get_habit(user_id, habit_id) is None:
            raise NotFound("Habit", habit_id)
        self.store.delete_habit(user_id, habit_id)
        logger.info("[delete_habit] user=%s habit=%s", user_id, habit_id)

    def complete_habit(self, user_id: str, habit_id: str, now: Optional[datetime] = None) -> CompletionOutcome:
        """Mark a habit complete and pay out its reward in one transaction.

        Raises NotFound when the user or habit is missing; nothing is written.
        """
        now = now or self.clock()

        def _complete(txn) -> CompletionOutcome:
            user_doc = txn.get_user(user_id)
            habit_doc = txn.get_habit(user_id, habit_id)
            if user_doc is None:
                raise NotFound("User", user_id)
            if habit_doc is None:
                raise NotFound("Habit", habit_id)

            user = User.from_dict(user_id, user_doc)
            habit = Habit.from_dict(habit_id, habit_doc)
            result = compute_completion(user, habit, self.catalog, now)

            txn.update_habit(user_id, habit_id, result.habit_update)
            txn.update_user(user_id, result.user_update)
            return CompletionOutcome(
                habit_id=habit_id,
                completed=True,
                message="Habit marked as complete!",
                streak=result.habit_update["streak"],
                reward=result.reward,
                currency=result.user_update["currency"],
                happiness=result.user_update["happinessMeter"],
                promotions=result.promotions,
            )

        try:
            outcome = self.store.run_transaction(_complete)
        except AlreadyCompletedToday:
            logger.info("[complete_habit] habit %s already completed today", habit_id)
            return CompletionOutcome(habit_id=habit_id, completed=False, message="Habit already completed today")

        logger.info(
            "[complete_habit] user=%s habit=%s streak=%d reward=%d promotions=%s",
            user_id, habit_id, outcome.streak, outcome.reward, outcome.promotions,
        )
        return outcome
