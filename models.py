# models.py
"""Typed views over the Firestore documents.

Documents are stored with the field names the mobile client uses
(`happinessMeter`, `lastUpdated`, ...). These classes only read them; writes go
back to the store as plain patch dicts.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from day_boundary import ensure_aware
from errors import PreconditionFailed

STATUS_PENDING = "pending"
STATUS_COMPLETE = "complete"

BADGE_HABIT_STREAK = "habitStreak"
BADGE_WEALTH_BUILDER = "wealthBuilder"
BADGE_COLLECTOR = "collector"
SEEDED_BADGES = (BADGE_HABIT_STREAK, BADGE_WEALTH_BUILDER, BADGE_COLLECTOR)

HAPPINESS_MAX = 100
HAPPINESS_MIN = 0
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_datetime(value) -> Optional[datetime]:
    """Convert Firestore Timestamp / datetime / ISO string into an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if hasattr(value, "to_datetime"):
        return ensure_aware(value.to_datetime())
    if isinstance(value, str) and value:
        return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise ValueError(f"Unsupported timestamp value: {value!r}")


def timestamp_or_epoch(value) -> datetime:
    """Sort key for optional timestamps; missing or unreadable values sort first."""
    try:
        return to_datetime(value) or EPOCH
    except ValueError:
        return EPOCH


def _require(doc: Dict[str, Any], key: str, kind: str, doc_id: str):
    if doc.get(key) is None:
        raise PreconditionFailed(kind, key, doc_id)
    return doc[key]


@dataclass
class UserBadge:
    badge_id: str
    highest_tier_achieved: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"badgeId": self.badge_id, "highestTierAchieved": self.highest_tier_achieved}


@dataclass
class User:
    id: str
    currency: int
    happiness_meter: float
    total_currency_earned: int = 0
    longest_current_streak: int = 0
    longest_obtained_streak: int = 0
    badges: List[UserBadge] = field(default_factory=list)
    friends: List[str] = field(default_factory=list)
    incoming_requests: List[str] = field(default_factory=list)
    outgoing_requests: List[str] = field(default_factory=list)
    username: str = ""

    @classmethod
    def from_dict(cls, user_id: str, doc: Optional[Dict[str, Any]]) -> "User":
        if doc is None:
            raise PreconditionFailed("User", "document", user_id)
        badges = [
            UserBadge(b["badgeId"], int(b.get("highestTierAchieved") or 0))
            for b in (doc.get("badges") or [])
            if b.get("badgeId")
        ]
        return cls(
            id=user_id,
            currency=int(_require(doc, "currency", "User", user_id)),
            happiness_meter=_require(doc, "happinessMeter", "User", user_id),
            total_currency_earned=int(doc.get("totalCurrencyEarned") or 0),
            longest_current_streak=int(doc.get("longestCurrentStreak") or 0),
            longest_obtained_streak=int(doc.get("longestObtainedStreak") or 0),
            badges=badges,
            friends=list(doc.get("friends") or []),
            incoming_requests=list(doc.get("incomingRequests") or []),
            outgoing_requests=list(doc.get("outgoingRequests") or []),
            username=doc.get("username") or "",
        )

    def badge_tier(self, badge_id: str) -> int:
        for badge in self.badges:
            if badge.badge_id == badge_id:
                return badge.highest_tier_achieved
        return 0


@dataclass
class Habit:
    id: str
    name: str
    streak: int
    status: str
    last_updated: datetime
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, habit_id: str, doc: Optional[Dict[str, Any]]) -> "Habit":
        if doc is None:
            raise PreconditionFailed("Habit", "document", habit_id)
        status = _require(doc, "status", "Habit", habit_id)
        if status not in (STATUS_PENDING, STATUS_COMPLETE):
            raise PreconditionFailed("Habit", "status", habit_id)
        return cls(
            id=habit_id,
            name=doc.get("name") or "",
            streak=int(_require(doc, "streak", "Habit", habit_id)),
            status=status,
            last_updated=to_datetime(_require(doc, "lastUpdated", "Habit", habit_id)),
            created_at=to_datetime(doc.get("createdAt")),
        )

    @property
    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETE


@dataclass
class BadgeTier:
    tier: int
    threshold: float
    tier_description: str = ""
    image_ref: str = ""


@dataclass
class Badge:
    id: str
    title: str
    base_description: str
    tiers: List[BadgeTier]

    @classmethod
    def from_dict(cls, badge_id: str, doc: Dict[str, Any]) -> "Badge":
        tiers = [
            BadgeTier(
                tier=int(t["tier"]),
                threshold=t["threshold"],
                tier_description=t.get("tierDescription", ""),
                image_ref=t.get("imageURL") or t.get("imageRef") or "",
            )
            for t in (doc.get("tiers") or [])
        ]
        tiers.sort(key=lambda t: t.tier)
        return cls(
            id=badge_id,
            title=doc.get("title", badge_id),
            base_description=doc.get("baseDescription", ""),
            tiers=tiers,
        )

    def tier_info(self, tier: int) -> Optional[BadgeTier]:
        return next((t for t in self.tiers if t.tier == tier), None)
