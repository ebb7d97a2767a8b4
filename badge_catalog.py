# badge_catalog.py
import logging
import threading
from typing import Dict, Optional

from models import BADGE_COLLECTOR, BADGE_HABIT_STREAK, BADGE_WEALTH_BUILDER, Badge

logger = logging.getLogger(__name__)

# Seed data for a fresh project. Production reads whatever is in the Badges collection.
DEFAULT_BADGES = {
    BADGE_HABIT_STREAK: {
        "title": "Habit Streak",
        "baseDescription": "Keep a habit going day after day.",
        "tiers": [
            {"tier": 1, "threshold": 3, "tierDescription": "Completed a habit 3 days in a row.", "imageURL": ""},
            {"tier": 2, "threshold": 7, "tierDescription": "Completed a habit 7 days in a row.", "imageURL": ""},
            {"tier": 3, "threshold": 14, "tierDescription": "Completed a habit 14 days in a row.", "imageURL": ""},
            {"tier": 4, "threshold": 30, "tierDescription": "Completed a habit 30 days in a row.", "imageURL": ""},
        ],
    },
    BADGE_WEALTH_BUILDER: {
        "title": "Wealth Builder",
        "baseDescription": "Earn coins by completing habits.",
        "tiers": [
            {"tier": 1, "threshold": 100, "tierDescription": "Earned 100 coins.", "imageURL": ""},
            {"tier": 2, "threshold": 500, "tierDescription": "Earned 500 coins.", "imageURL": ""},
            {"tier": 3, "threshold": 1000, "tierDescription": "Earned 1,000 coins.", "imageURL": ""},
            {"tier": 4, "threshold": 5000, "tierDescription": "Earned 5,000 coins.", "imageURL": ""},
        ],
    },
    BADGE_COLLECTOR: {
        "title": "Collector",
        "baseDescription": "Buy items for your pal in the shop.",
        "tiers": [
            {"tier": 1, "threshold": 1, "tierDescription": "Bought your first item.", "imageURL": ""},
            {"tier": 2, "threshold": 3, "tierDescription": "Own 3 items.", "imageURL": ""},
            {"tier": 3, "threshold": 5, "tierDescription": "Own 5 items.", "imageURL": ""},
            {"tier": 4, "threshold": 10, "tierDescription": "Own 10 items.", "imageURL": ""},
        ],
    },
}


class BadgeCatalog:
    """Read-through cache of the Badges collection.

    Loaded once (lazily or via `load()` at startup) and then served from
    memory; call `refresh()` after editing badge definitions.
    """

    def __init__(self, store):
        self.store = store
        self._badges: Optional[Dict[str, Badge]] = None
        self._lock = threading.Lock()

    def load(self) -> Dict[str, Badge]:
        with self._lock:
            if self._badges is None:
                docs = self.store.list_badges()
                self._badges = {bid: Badge.from_dict(bid, doc) for bid, doc in docs.items()}
                logger.info("[badge_catalog] loaded %d badges", len(self._badges))
            return self._badges

    def refresh(self) -> Dict[str, Badge]:
        with self._lock:
            self._badges = None
        return self.load()

    def get_badge(self, badge_id: str) -> Optional[Badge]:
        return self.load().get(badge_id)

    def highest_tier(self, badge_id: str, metric) -> Optional[int]:
        """Highest tier whose threshold the metric meets, or None."""
        badge = self.get_badge(badge_id)
        if badge is None:
            logger.error("[badge_catalog] No badge found with ID: %s", badge_id)
            return None
        reached = [t.tier for t in badge.tiers if metric >= t.threshold]
        return max(reached) if reached else None


def seed_badges(store, badges: Dict[str, dict] = None) -> int:
    """Write badge definitions that are not already present. Returns how many were written."""
    existing = store.list_badges()
    written = 0
    for badge_id, doc in (badges or DEFAULT_BADGES).items():
        if badge_id in existing:
            continue
        store.set_badge(badge_id, doc)
        written += 1
    logger.info("[seed_badges] wrote %d badge definitions", written)
    return written
