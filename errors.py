# errors.py
"""Exceptions raised by the habit, social and shop services."""


class HabitError(Exception):
    """Base class for every domain error raised by the services."""


class NotFound(HabitError):
    """A referenced user, habit, chat or shop item does not exist."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} '{key}' not found")


class AlreadyCompletedToday(HabitError):
    """Benign: the habit was already completed within the last day."""

    def __init__(self, habit_id: str = ""):
        self.habit_id = habit_id
        super().__init__("Habit already completed today")


class PreconditionFailed(HabitError):
    """A stored record is missing a field the computation needs."""

    def __init__(self, kind: str, field: str, key: str = ""):
        self.kind = kind
        self.field = field
        self.key = key
        where = f" '{key}'" if key else ""
        super().__init__(f"{kind}{where} is missing required field '{field}'")


class TransientConflict(HabitError):
    """Concurrent writes kept colliding until the store gave up retrying."""


class InvalidRequest(HabitError):
    """The caller asked for something the business rules do not allow."""


class InsufficientFunds(HabitError):
    """A purchase costs more than the user's current balance.

    Attributes:
        balance: currency held by the user
        cost: price of the item
        shortfall: how much more the user needs
    """

    def __init__(self, balance: int, cost: int):
        self.balance = balance
        self.cost = cost
        self.shortfall = cost - balance
        super().__init__(
            f"Insufficient funds: balance={balance}, cost={cost}, shortfall={self.shortfall}"
        )
